"""
CLI entrypoint for the token retention job. Run from cron, e.g.:

  python -m kodbank.retention

Or hourly: 0 * * * * cd /path/to/kodbank && .venv/bin/python -m kodbank.retention
"""

import logging
import sys

from dotenv import load_dotenv

from kodbank.core.config import get_settings
from kodbank.core.database import Database
from kodbank.core.logging import setup_logging
from kodbank.services.retention import prune_expired_tokens

logger = logging.getLogger(__name__)


def main() -> int:
    """Run retention: delete session token rows past expiry."""
    load_dotenv()
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    database = Database.from_settings(settings, pool_size=1, max_overflow=0)
    db = database.session()
    try:
        tokens_deleted = prune_expired_tokens(db, settings)
        logger.info("Token retention completed: tokens_deleted=%s", tokens_deleted)
        return 0
    except Exception as e:
        logger.exception("Token retention job failed: %s", e)
        return 1
    finally:
        db.close()
        database.dispose()


if __name__ == "__main__":
    sys.exit(main())
