"""Core app configuration, database, security and session cookie."""

from kodbank.core.config import Settings, get_settings
from kodbank.core.database import Database, get_db

__all__ = ["Database", "Settings", "get_db", "get_settings"]
