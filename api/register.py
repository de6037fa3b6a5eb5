"""Serverless function: POST /api/register."""

from kodbank.serverless import create_function_app

app = create_function_app("register")
