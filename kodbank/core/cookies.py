"""Session cookie: set on login, read on every authenticated request, cleared on logout."""

from typing import Any

from fastapi import Request, Response

from kodbank.core.security import SESSION_TTL

SESSION_COOKIE_NAME = "kodbank_token"
SESSION_COOKIE_MAX_AGE = int(SESSION_TTL.total_seconds())

# Set and clear must use identical attributes or browsers keep the original cookie.
_COOKIE_ATTRIBUTES: dict[str, Any] = {
    "path": "/",
    "secure": True,
    "httponly": True,
    "samesite": "lax",
}


def attach_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        token,
        max_age=SESSION_COOKIE_MAX_AGE,
        **_COOKIE_ATTRIBUTES,
    )


def read_session_cookie(request: Request) -> str | None:
    """Return the session token from the request cookies, or None when absent or empty."""
    token = request.cookies.get(SESSION_COOKIE_NAME)
    return token or None


def clear_session_cookie(response: Response) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        "",
        max_age=0,
        expires=0,
        **_COOKIE_ATTRIBUTES,
    )
