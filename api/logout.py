"""Serverless function: POST /api/logout."""

from kodbank.serverless import create_function_app

app = create_function_app("logout")
