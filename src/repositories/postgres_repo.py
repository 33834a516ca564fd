"""PostgreSQL engine factory and base repository using SQLAlchemy Core."""

from __future__ import annotations

import json
import os
from typing import Optional

import boto3
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import QueuePool

from utils.error_handling import ConfigurationError
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Connection pooling for Lambda reuse.
_engine: Optional[Engine] = None


def get_db_engine() -> Engine:
    """Get or create the SQLAlchemy engine with connection pooling."""
    global _engine
    if _engine is None:
        db_url = os.environ.get("DATABASE_URL")
        if not db_url:
            secret_arn = os.environ.get("DB_SECRET_ARN")
            db_url = _secret_to_db_url(secret_arn) if secret_arn else None
        if not db_url:
            raise ConfigurationError("DATABASE_URL or DB_SECRET_ARN must be set")
        _engine = create_engine(
            db_url,
            poolclass=QueuePool,
            pool_size=2,
            max_overflow=2,
            pool_pre_ping=True,
            pool_recycle=300,
        )
    return _engine


def _secret_to_db_url(secret_arn: str) -> Optional[str]:
    """Build a SQLAlchemy URL from an RDS secret."""
    try:
        sm = boto3.client("secretsmanager")
        secret = json.loads(sm.get_secret_value(SecretId=secret_arn)["SecretString"])
    except Exception as exc:
        logger.warning("Failed to load DB secret", extra={"error": str(exc)})
        return None

    host = secret.get("host")
    port = secret.get("port", 5432)
    username = secret.get("username")
    password = secret.get("password")
    dbname = secret.get("dbname", "postgres")
    if not (host and username and password):
        return None
    return f"postgresql+psycopg2://{username}:{password}@{host}:{port}/{dbname}"


class PostgresRepository:
    """Base class keeping the engine and dialect checks in one place."""

    def __init__(self, engine: Engine):
        self.engine = engine

    @property
    def is_postgres(self) -> bool:
        return self.engine.dialect.name == "postgresql"
