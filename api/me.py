"""Serverless function: GET /api/me."""

from kodbank.serverless import create_function_app

app = create_function_app("me")
