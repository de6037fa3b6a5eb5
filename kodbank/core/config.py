"""Application configuration loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Allowed URL schemes for DATABASE_URL (module-level so validators can use it).
VALID_DATABASE_URL_PREFIXES = (
    "postgresql://",
    "postgresql+psycopg2://",
    "postgres://",
    "postgres+psycopg2://",
)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Validated application settings from env and optional .env file.

    DATABASE_URL, JWT_SECRET and CORS_ORIGINS have no defaults: constructing
    Settings without them raises, so the process refuses to start.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    APP_ENV: Literal["dev", "prod"] = "dev"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    API_PREFIX: str = "/api"

    DATABASE_URL: str
    # Long-running server pool; serverless functions use SERVERLESS_POOL_SIZE with no overflow.
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 5
    SERVERLESS_POOL_SIZE: int = 3
    DB_POOL_TIMEOUT_SEC: float = 10.0
    DB_CONNECT_TIMEOUT_SEC: int = 10
    DB_STATEMENT_TIMEOUT_MS: int = 5000
    # Run metadata.create_all at startup instead of relying on alembic.
    DB_CREATE_TABLES: bool = False

    # Comma-separated list of browser origins allowed to send credentialed requests.
    CORS_ORIGINS: str

    JWT_SECRET: SecretStr
    JWT_ALGORITHM: str = "HS256"

    # Pruning of expired user_tokens rows (python -m kodbank.retention). Off by default.
    TOKEN_RETENTION_ENABLED: bool = False
    TOKEN_RETENTION_GRACE_HOURS: int = 0

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DATABASE_URL must be set and non-empty")
        if not any(v.startswith(prefix) for prefix in VALID_DATABASE_URL_PREFIXES):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL URL (e.g. postgresql:// or postgresql+psycopg2://)"
            )
        return v.strip()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}")
        return level

    @field_validator("API_PREFIX")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith("/"):
            raise ValueError("API_PREFIX must start with '/' (e.g. /api)")
        return v

    @field_validator("DB_POOL_SIZE", "SERVERLESS_POOL_SIZE")
    @classmethod
    def validate_pool_size(cls, v: int) -> int:
        if v < 1 or v > 100:
            raise ValueError("Pool sizes must be between 1 and 100")
        return v

    @field_validator("DB_MAX_OVERFLOW")
    @classmethod
    def validate_max_overflow(cls, v: int) -> int:
        if v < 0 or v > 100:
            raise ValueError("DB_MAX_OVERFLOW must be between 0 and 100")
        return v

    @field_validator("DB_POOL_TIMEOUT_SEC")
    @classmethod
    def validate_pool_timeout(cls, v: float) -> float:
        if v <= 0 or v > 120:
            raise ValueError("DB_POOL_TIMEOUT_SEC must be greater than 0 and at most 120")
        return v

    @field_validator("DB_CONNECT_TIMEOUT_SEC")
    @classmethod
    def validate_connect_timeout(cls, v: int) -> int:
        if v < 1 or v > 120:
            raise ValueError("DB_CONNECT_TIMEOUT_SEC must be between 1 and 120")
        return v

    @field_validator("DB_STATEMENT_TIMEOUT_MS")
    @classmethod
    def validate_statement_timeout(cls, v: int) -> int:
        # 0 disables the server-side timeout.
        if v < 0 or v > 600000:
            raise ValueError("DB_STATEMENT_TIMEOUT_MS must be between 0 and 600000")
        return v

    @field_validator("CORS_ORIGINS")
    @classmethod
    def validate_cors_origins(cls, v: str) -> str:
        origins = [o.strip() for o in v.split(",") if o.strip()]
        if not origins:
            raise ValueError("CORS_ORIGINS must list at least one origin")
        for origin in origins:
            s = origin.lower()
            if not (s.startswith("http://") or s.startswith("https://")):
                raise ValueError(
                    f"CORS_ORIGINS entries must use http or https (got {origin!r})"
                )
        return ",".join(o.rstrip("/") for o in origins)

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value() or not v.get_secret_value().strip():
            raise ValueError("JWT_SECRET must be set and non-empty")
        return v

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("JWT_ALGORITHM must be set and non-empty")
        if not v.strip().startswith("HS"):
            raise ValueError("JWT_ALGORITHM must be an HMAC algorithm (HS256, HS384, HS512)")
        return v.strip()

    @field_validator("TOKEN_RETENTION_GRACE_HOURS")
    @classmethod
    def validate_token_retention_grace(cls, v: int) -> int:
        if v < 0 or v > 8760:
            raise ValueError(
                "TOKEN_RETENTION_GRACE_HOURS must be between 0 and 8760 (up to 1 year)"
            )
        return v

    @property
    def cors_origins(self) -> list[str]:
        return self.CORS_ORIGINS.split(",")


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance. Raises if required variables are missing."""
    return Settings()
