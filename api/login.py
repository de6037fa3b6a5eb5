"""Serverless function: POST /api/login."""

from kodbank.serverless import create_function_app

app = create_function_app("login")
