"""Serverless function: GET /api/balance."""

from kodbank.serverless import create_function_app

app = create_function_app("balance")
