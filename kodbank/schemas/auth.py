"""Request/response schemas for auth and account endpoints.

Request fields are optional at the schema level so that missing values reach
the service and produce its 400 messages instead of a generic body error.
"""

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    """New account details."""

    username: str | None = Field(default=None, description="Username (3-50 chars after trimming)")
    email: str | None = Field(default=None, description="Email; stored lowercased")
    password: str | None = Field(default=None, description="Password (6-128 chars)")
    phone: str | None = Field(default=None, description="Optional phone number")


class LoginRequest(BaseModel):
    """Credentials for login."""

    username: str | None = Field(default=None, description="Username")
    password: str | None = Field(default=None, description="Password")


class SessionClaims(BaseModel):
    """Identity embedded in a session token (sub, uid, role)."""

    username: str
    uid: str
    role: str


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class PublicUser(BaseModel):
    """User fields safe to return after login (no hash, no internal id)."""

    username: str
    role: str
    email: str


class LoginResponse(BaseModel):
    success: bool = True
    message: str
    user: PublicUser


class SessionUser(BaseModel):
    """Identity as carried by the session token."""

    username: str
    role: str
    uid: str


class MeResponse(BaseModel):
    success: bool = True
    user: SessionUser


class BalanceResponse(BaseModel):
    """Live balance read from storage, rounded to two decimals.

    balance is a JSON number, so 100000.00 serializes as 100000.0; clients format
    the two decimals for display.
    """

    success: bool = True
    username: str
    balance: float
    role: str


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Human-readable error message")
