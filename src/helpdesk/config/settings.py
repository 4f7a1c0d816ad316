"""
Environment-specific configuration settings.

Defaults suit local development: an in-memory SQLite store and the
reopen/retry limits the helpdesk ships with.
"""

from dataclasses import dataclass
import json
import os
from typing import Optional

import boto3

from helpdesk.utils.error_handling import AppError
from helpdesk.utils.logging_config import get_logger

logger = get_logger(__name__)

SQLITE_MEMORY_URL = "sqlite+pysqlite:///:memory:"


@dataclass
class Settings:
    """Application settings with development-friendly defaults."""

    # Environment
    environment: str = "dev"

    # Database
    database_url: str = SQLITE_MEMORY_URL
    db_pool_size: int = 1
    db_max_overflow: int = 2

    # Resolution workflow
    reopen_window_days: int = 3
    max_reopen_allowed: int = 3

    # Optimistic-lock conflicts are retried at most this many times
    conflict_retries: int = 1

    @classmethod
    def from_environment(cls) -> "Settings":
        """Load settings from environment variables."""
        env = os.environ.get("ENVIRONMENT", "dev")
        database_url = _resolve_database_url(env)
        common = dict(
            environment=env,
            database_url=database_url,
            reopen_window_days=int(os.environ.get("REOPEN_WINDOW_DAYS", "3")),
            max_reopen_allowed=int(os.environ.get("MAX_REOPEN_ALLOWED", "3")),
            conflict_retries=int(os.environ.get("CONFLICT_RETRIES", "1")),
        )

        # Production overrides
        if env == "prod":
            return cls(db_pool_size=5, db_max_overflow=10, **common)

        return cls(**common)


def _resolve_database_url(env: str) -> str:
    db_url = os.environ.get("DATABASE_URL")
    if db_url:
        return db_url

    secret_arn = os.environ.get("DB_SECRET_ARN")
    if secret_arn:
        db_url = _secret_to_db_url(secret_arn)
        if db_url:
            return db_url

    if env == "prod":
        raise AppError("DATABASE_URL or DB_SECRET_ARN must be configured", status_code=500)

    logger.warning("DATABASE_URL not set; using in-memory SQLite store")
    return SQLITE_MEMORY_URL


def _secret_to_db_url(secret_arn: str) -> Optional[str]:
    """Build a SQLAlchemy URL from an RDS secret."""
    sm = boto3.client("secretsmanager")
    secret = json.loads(sm.get_secret_value(SecretId=secret_arn)["SecretString"])
    host = secret.get("host")
    port = secret.get("port", 5432)
    username = secret.get("username")
    password = secret.get("password")
    dbname = secret.get("dbname", "postgres")
    if not (host and username and password):
        logger.warning("DB secret is missing connection fields", extra={"secret_arn": secret_arn})
        return None
    return f"postgresql+psycopg2://{username}:{password}@{host}:{port}/{dbname}"
