"""Error taxonomy shared by the service layer and both HTTP adapters.

Every error renders to the client as ``{"error": "<message>"}``. Internal
details (driver messages, token failure reasons) are logged, never returned.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class KodbankError(Exception):
    """Base for errors that map to a client-visible status and message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(KodbankError):
    """Malformed or missing input; raised before any store access."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(KodbankError):
    status_code = status.HTTP_401_UNAUTHORIZED


class InvalidCredentialsError(AuthError):
    """Unknown username or wrong password. Both share one message."""

    def __init__(self) -> None:
        super().__init__("Invalid username or password.")


class NotAuthenticatedError(AuthError):
    def __init__(self) -> None:
        super().__init__("Not authenticated. Please log in.")


class SessionExpiredError(AuthError):
    """Expired or tampered token. The client sees the same message for both."""

    def __init__(self) -> None:
        super().__init__("Session expired. Please log in again.")


class ConflictError(KodbankError):
    """Duplicate username or email."""

    status_code = status.HTTP_409_CONFLICT

    def __init__(self, field: str) -> None:
        super().__init__(f"{field} is already taken. Please choose another.")
        self.field = field


class NotFoundError(KodbankError):
    status_code = status.HTTP_404_NOT_FOUND


class InternalError(KodbankError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


_HTTP_STATUS_MESSAGES = {
    status.HTTP_404_NOT_FOUND: "Not found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "Method not allowed",
}


def error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


async def _handle_kodbank_error(request: Request, exc: KodbankError) -> JSONResponse:
    return error_response(exc.status_code, exc.message)


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = _HTTP_STATUS_MESSAGES.get(exc.status_code)
    if message is None:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(exc.status_code, message, headers=getattr(exc, "headers", None))


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.debug("Rejected request body on %s: %s", request.url.path, exc.errors())
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid request body.")


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as a JSON body with a single 'error' string."""
    app.add_exception_handler(KodbankError, _handle_kodbank_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
