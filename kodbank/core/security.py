"""Password hashing and session token creation/verification."""

from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from kodbank.core.config import Settings
from kodbank.schemas.auth import SessionClaims

# Bcrypt cost (rounds).
BCRYPT_ROUNDS = 12

# Session tokens and the session cookie share this lifetime.
SESSION_TTL = timedelta(hours=24)

# Claims every session token must carry.
REQUIRED_CLAIMS = ["sub", "uid", "role", "iat", "exp"]


class TokenVerificationError(Exception):
    """Session token was rejected."""


class TokenExpiredError(TokenVerificationError):
    """Signature is valid but the token is past its exp claim."""


class InvalidTokenError(TokenVerificationError):
    """Token is malformed, has a bad signature or lacks required claims."""


def hash_password(plain_password: str) -> str:
    """Hash a plain-text password for storage. Do not store plain passwords."""
    # bcrypt has a 72-byte limit; truncate to avoid errors (validation already limits length).
    pw_bytes = plain_password.encode("utf-8")[:72]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash. Malformed hashes verify as False."""
    pw_bytes = plain_password.encode("utf-8")[:72]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


def session_expiry(now: datetime) -> datetime:
    """Absolute expiry for a token issued at now."""
    return now + SESSION_TTL


def create_session_token(
    claims: SessionClaims,
    settings: Settings,
    now: datetime | None = None,
) -> str:
    """Create a signed session token carrying sub (username), uid, role, iat and exp."""
    issued_at = now or datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": claims.username,
        "uid": claims.uid,
        "role": claims.role,
        "iat": issued_at,
        "exp": session_expiry(issued_at),
    }
    return jwt.encode(
        payload,
        settings.JWT_SECRET.get_secret_value(),
        algorithm=settings.JWT_ALGORITHM,
    )


def decode_session_token(token: str, settings: Settings) -> SessionClaims:
    """
    Check signature and expiry; return the embedded claims.
    Raises TokenExpiredError or InvalidTokenError (both TokenVerificationError).
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET.get_secret_value(),
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": REQUIRED_CLAIMS},
        )
    except jwt.ExpiredSignatureError as e:
        raise TokenExpiredError(str(e)) from e
    except jwt.PyJWTError as e:
        raise InvalidTokenError(str(e)) from e

    sub, uid, role = payload.get("sub"), payload.get("uid"), payload.get("role")
    if not all(isinstance(v, str) and v for v in (sub, uid, role)):
        raise InvalidTokenError("Invalid token payload")
    return SessionClaims(username=sub, uid=uid, role=role)
