"""Pydantic request/response schemas."""

from kodbank.schemas.auth import (
    BalanceResponse,
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    MeResponse,
    MessageResponse,
    PublicUser,
    RegisterRequest,
    SessionClaims,
    SessionUser,
)
from kodbank.schemas.health import HealthResponse

__all__ = [
    "BalanceResponse",
    "ErrorResponse",
    "HealthResponse",
    "LoginRequest",
    "LoginResponse",
    "MeResponse",
    "MessageResponse",
    "PublicUser",
    "RegisterRequest",
    "SessionClaims",
    "SessionUser",
]
