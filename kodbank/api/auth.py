"""Auth and account endpoints: register, login, balance, me, logout."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.orm import Session

from kodbank.core.config import Settings
from kodbank.core.cookies import attach_session_cookie, clear_session_cookie, read_session_cookie
from kodbank.core.database import get_db
from kodbank.models.user import STARTING_BALANCE
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
from kodbank.services.auth import authenticate_user, check_session, get_account, register_user

router = APIRouter()

CENTS = Decimal("0.01")


def get_app_settings(request: Request) -> Settings:
    """Dependency: the Settings the running app was built with."""
    return request.app.state.settings


def get_session_claims(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> SessionClaims:
    """Dependency: claims from the session cookie. Raises 401 if missing, expired or invalid."""
    return check_session(read_session_cookie(request), settings)


@router.post(
    "/register",
    name="register",
    status_code=status.HTTP_201_CREATED,
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Create an account with the starting balance. Does not log in."""
    user = register_user(db, body.username, body.email, body.password, body.phone)
    return MessageResponse(
        message=(
            f"Account created! Welcome to Kodbank, {user.username}. "
            f"{STARTING_BALANCE:,.2f} has been added to your account."
        )
    )


@router.post(
    "/login",
    name="login",
    response_model=LoginResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
def login(
    body: LoginRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> LoginResponse:
    """Authenticate with username and password; the session token is set as an HttpOnly cookie."""
    user, token = authenticate_user(db, body.username, body.password, settings)
    attach_session_cookie(response, token)
    return LoginResponse(
        message=f"Welcome back, {user.username}!",
        user=PublicUser(username=user.username, role=user.role, email=user.email),
    )


@router.get(
    "/balance",
    name="balance",
    response_model=BalanceResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def balance(
    claims: Annotated[SessionClaims, Depends(get_session_claims)],
    db: Annotated[Session, Depends(get_db)],
) -> BalanceResponse:
    """Identity comes from the token; balance, username and role are re-read from storage."""
    user = get_account(db, claims)
    amount = Decimal(user.balance).quantize(CENTS, rounding=ROUND_HALF_UP)
    return BalanceResponse(username=user.username, balance=float(amount), role=user.role)


@router.get(
    "/me",
    name="me",
    response_model=MeResponse,
    responses={401: {"model": ErrorResponse}},
)
def me(claims: Annotated[SessionClaims, Depends(get_session_claims)]) -> MeResponse:
    """Return the identity embedded in the session token; no store access."""
    return MeResponse(user=SessionUser(username=claims.username, role=claims.role, uid=claims.uid))


@router.post("/logout", name="logout", response_model=MessageResponse)
def logout(response: Response) -> MessageResponse:
    """Clear the session cookie. Always succeeds, with or without a session."""
    clear_session_cookie(response)
    return MessageResponse(message="Logged out successfully.")
