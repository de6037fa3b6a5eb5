"""PostgreSQL engine, connection pool and session management."""

import logging
from collections.abc import Generator

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from kodbank.core.config import Settings
from kodbank.models import Base

logger = logging.getLogger(__name__)


def create_store_engine(
    settings: Settings,
    pool_size: int | None = None,
    max_overflow: int | None = None,
) -> Engine:
    """Build the pooled engine for DATABASE_URL with connect and statement timeouts."""
    connect_args: dict[str, object] = {"connect_timeout": settings.DB_CONNECT_TIMEOUT_SEC}
    if settings.DB_STATEMENT_TIMEOUT_MS:
        connect_args["options"] = f"-c statement_timeout={settings.DB_STATEMENT_TIMEOUT_MS}"
    return create_engine(
        settings.DATABASE_URL,
        pool_pre_ping=True,
        pool_size=pool_size if pool_size is not None else settings.DB_POOL_SIZE,
        max_overflow=max_overflow if max_overflow is not None else settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT_SEC,
        connect_args=connect_args,
        echo=settings.DEBUG,
    )


class Database:
    """
    Owns one engine and its session factory.

    Built once per process by the app factory, kept on app.state and disposed
    at shutdown. Request handlers reach it through get_db.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        # Rows stay readable after commit without a refresh query.
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=engine,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        pool_size: int | None = None,
        max_overflow: int | None = None,
    ) -> "Database":
        return cls(create_store_engine(settings, pool_size=pool_size, max_overflow=max_overflow))

    def session(self) -> Session:
        return self.SessionLocal()

    def create_tables(self) -> None:
        """Create users and user_tokens if they do not exist."""
        Base.metadata.create_all(self.engine)
        logger.info("Tables ready (users, user_tokens)")

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Generator[Session, None, None]:
    """Dependency that yields a DB session and closes it when done."""
    database: Database = request.app.state.database
    db = database.session()
    try:
        yield db
    finally:
        db.close()


def check_db_connected(db: Session) -> bool:
    """Run a trivial query to verify the database is reachable."""
    try:
        db.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.warning("Database connectivity check failed", exc_info=True)
        return False
