"""ASGI entrypoint for the long-running server: uvicorn kodbank.main:app"""

from dotenv import load_dotenv

load_dotenv()

from kodbank.app import create_app  # noqa: E402

app = create_app()
