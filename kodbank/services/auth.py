"""Registration, login, session check and balance lookup.

Transport-agnostic: both the long-running app and the per-route functions call
into this module; cookies are handled by the HTTP adapters.
"""

from __future__ import annotations

import enum
import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from kodbank.core.errors import (
    ConflictError,
    InternalError,
    InvalidCredentialsError,
    NotAuthenticatedError,
    NotFoundError,
    SessionExpiredError,
    ValidationError,
)
from kodbank.core.security import (
    TokenExpiredError,
    TokenVerificationError,
    create_session_token,
    decode_session_token,
    hash_password,
    session_expiry,
    verify_password,
)
from kodbank.models import User, UserToken
from kodbank.models.user import DEFAULT_ROLE, STARTING_BALANCE
from kodbank.schemas.auth import SessionClaims

if TYPE_CHECKING:
    from kodbank.core.config import Settings

logger = logging.getLogger(__name__)

# Input limits; maxima follow the users table column sizes.
USERNAME_MIN_LEN = 3
USERNAME_MAX_LEN = 50
EMAIL_MAX_LEN = 100
PHONE_MAX_LEN = 20
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128

ROLES = ("customer", "admin")

USERNAME_CONFLICT_MARKERS = ("(username)", "users.username", "ix_users_username")


class AuthState(enum.Enum):
    """Per-request authentication state."""

    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"


def _transition(state: AuthState, operation: str, **extra: object) -> None:
    details = " ".join(f"{k}={v}" for k, v in extra.items())
    logger.debug("%s: %s %s", operation, state.value, details, extra={"auth_state": state.value, **extra})


def _conflict_field(exc: IntegrityError) -> str:
    """Best-effort: which unique column collided, from the driver's message."""
    detail = (str(exc.orig) if exc.orig is not None else str(exc)).lower()
    # PostgreSQL: Key (username)=... / ix_users_username; SQLite: users.username
    if any(marker in detail for marker in USERNAME_CONFLICT_MARKERS):
        return "Username"
    return "Email"


def _validate_registration(
    username: str | None,
    email: str | None,
    password: str | None,
    phone: str | None,
) -> None:
    if not username or not email or not email.strip() or not password:
        raise ValidationError("Username, email and password are required.")
    trimmed = username.strip()
    if len(trimmed) < USERNAME_MIN_LEN:
        raise ValidationError(f"Username must be at least {USERNAME_MIN_LEN} characters.")
    if len(trimmed) > USERNAME_MAX_LEN:
        raise ValidationError(f"Username must be at most {USERNAME_MAX_LEN} characters.")
    if len(password) < PASSWORD_MIN_LEN:
        raise ValidationError(f"Password must be at least {PASSWORD_MIN_LEN} characters.")
    if len(password) > PASSWORD_MAX_LEN:
        raise ValidationError(f"Password must be at most {PASSWORD_MAX_LEN} characters.")
    if len(email.strip()) > EMAIL_MAX_LEN:
        raise ValidationError(f"Email must be at most {EMAIL_MAX_LEN} characters.")
    if phone and len(phone.strip()) > PHONE_MAX_LEN:
        raise ValidationError(f"Phone must be at most {PHONE_MAX_LEN} characters.")


def register_user(
    db: Session,
    username: str | None,
    email: str | None,
    password: str | None,
    phone: str | None = None,
    role: str = DEFAULT_ROLE,
) -> User:
    """
    Create an account with the starting balance. Does not log the user in.

    Raises ValidationError before touching the store, ConflictError("Username" or
    "Email") on a unique violation, InternalError on any other store failure.
    """
    _validate_registration(username, email, password, phone)
    if role not in ROLES:
        raise ValidationError(f"Role must be one of: {', '.join(ROLES)}.")

    user = User(
        uid=str(uuid.uuid4()),
        username=username.strip(),
        email=email.strip().lower(),
        password_hash=hash_password(password),
        balance=STARTING_BALANCE,
        phone=(phone.strip() or None) if phone else None,
        role=role,
    )
    try:
        db.add(user)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        field = _conflict_field(e)
        logger.info("Registration conflict on %s", field.lower(), extra={"field": field.lower()})
        raise ConflictError(field) from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Registration failed for username=%s", user.username)
        raise InternalError("Registration failed. Please try again.") from e

    logger.info(
        "Registered user %s (role=%s)",
        user.username,
        user.role,
        extra={"username": user.username, "role": user.role},
    )
    return user


def authenticate_user(
    db: Session,
    username: str | None,
    password: str | None,
    settings: Settings,
    now: datetime | None = None,
) -> tuple[User, str]:
    """
    Verify credentials, issue a 24h session token and record it in user_tokens.

    Unknown usernames and wrong passwords raise the same InvalidCredentialsError.
    Returns (user, token); the caller attaches the token as the session cookie.
    """
    if not username or not password or not username.strip():
        raise ValidationError("Username and password are required.")
    username = username.strip()
    _transition(AuthState.AUTHENTICATING, "login", username=username)

    try:
        user = db.query(User).filter(User.username == username).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Login lookup failed")
        raise InternalError("Login failed. Please try again.") from e

    if user is None or not verify_password(password, user.password_hash):
        _transition(AuthState.REJECTED, "login", username=username)
        reason = "unknown_user" if user is None else "bad_password"
        logger.info(
            "Login rejected for %s: %s",
            username,
            reason,
            extra={"username": username, "reason": reason},
        )
        raise InvalidCredentialsError()

    issued_at = now or datetime.now(UTC)
    token = create_session_token(
        SessionClaims(username=user.username, uid=user.uid, role=user.role),
        settings,
        now=issued_at,
    )
    try:
        db.add(
            UserToken(
                tid=str(uuid.uuid4()),
                token=token,
                user_id=user.uid,
                expiry=session_expiry(issued_at),
            )
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Recording session token failed for username=%s", user.username)
        raise InternalError("Login failed. Please try again.") from e

    _transition(AuthState.AUTHENTICATED, "login", username=user.username)
    logger.info("Login succeeded for %s", user.username, extra={"username": user.username})
    return user, token


def check_session(token: str | None, settings: Settings) -> SessionClaims:
    """
    Return the claims of a valid session token.

    Only the signature and exp are checked; user_tokens is not consulted.
    Expired and invalid tokens both raise SessionExpiredError.
    """
    if not token:
        _transition(AuthState.ANONYMOUS, "check_session")
        raise NotAuthenticatedError()
    try:
        claims = decode_session_token(token, settings)
    except TokenVerificationError as e:
        reason = "expired" if isinstance(e, TokenExpiredError) else "invalid"
        _transition(AuthState.REJECTED, "check_session", reason=reason)
        logger.info("Session token rejected: %s", reason, extra={"reason": reason})
        raise SessionExpiredError() from e
    _transition(AuthState.AUTHENTICATED, "check_session", username=claims.username)
    return claims


def get_account(db: Session, claims: SessionClaims) -> User:
    """Re-read the live account row for the session's user id."""
    try:
        user = db.query(User).filter(User.uid == claims.uid).first()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Balance lookup failed")
        raise InternalError("Could not load balance. Please try again.") from e
    if user is None:
        logger.warning("Valid session for missing user %s", claims.uid, extra={"uid": claims.uid})
        raise NotFoundError("User not found.")
    return user
