"""Token retention: delete user_tokens rows past expiry. Opt-in via TOKEN_RETENTION_ENABLED."""

import logging
from datetime import datetime, timezone, timedelta
from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from kodbank.models import UserToken

if TYPE_CHECKING:
    from kodbank.core.config import Settings

logger = logging.getLogger(__name__)


def prune_expired_tokens(
    session: Session,
    settings: "Settings",
    now: datetime | None = None,
) -> int:
    """
    Delete token rows whose expiry is older than now minus TOKEN_RETENTION_GRACE_HOURS.

    Returns the number of rows deleted. Idempotent: safe to run repeatedly.
    Verification never reads these rows, so pruning does not end any session.
    """
    if not settings.TOKEN_RETENTION_ENABLED:
        logger.info("Token retention is disabled (TOKEN_RETENTION_ENABLED=false); skipping.")
        return 0

    cutoff = (now or datetime.now(timezone.utc)) - timedelta(
        hours=settings.TOKEN_RETENTION_GRACE_HOURS
    )
    deleted_count = (
        session.query(UserToken)
        .filter(UserToken.expiry < cutoff)
        .delete(synchronize_session=False)
    )
    session.commit()

    if deleted_count > 0:
        logger.info(
            "Token retention run: cutoff=%s, tokens_deleted=%s",
            cutoff.isoformat(),
            deleted_count,
        )
    return deleted_count
