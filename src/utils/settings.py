"""
Runtime settings for the sync pipeline.

Read from environment variables once per Lambda container.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional

import boto3

from utils.error_handling import ConfigurationError
from utils.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://webapigw.ocatelkom.co.id/oca-interaction/ticketing"
DEFAULT_SLA_THRESHOLDS = "connectivity=3,solution=6"


def parse_sla_thresholds(raw: str) -> Dict[str, float]:
    """Parse 'connectivity=3,solution=6' into {product: hours}."""
    thresholds: Dict[str, float] = {}
    for chunk in raw.split(","):
        if not chunk.strip():
            continue
        product, sep, hours = chunk.partition("=")
        if not sep or not product.strip():
            raise ConfigurationError(f"Malformed SLA threshold entry: {chunk!r}")
        try:
            thresholds[product.strip().lower()] = float(hours)
        except ValueError as exc:
            raise ConfigurationError(f"Malformed SLA threshold hours: {chunk!r}") from exc
    return thresholds


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 1:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


def _float_env(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _load_api_secret(secret_arn: str) -> Dict[str, str]:
    """Read {"username", "password"} for the ticketing API from Secrets Manager."""
    try:
        sm = boto3.client("secretsmanager")
        secret = json.loads(sm.get_secret_value(SecretId=secret_arn)["SecretString"])
    except Exception as exc:
        raise ConfigurationError(f"Failed to load ticketing API secret: {exc}") from exc
    return {
        "username": secret.get("username", ""),
        "password": secret.get("password", ""),
    }


@dataclass(frozen=True)
class PipelineSettings:
    """Settings shared by the scheduler, worker and export handlers."""

    environment: str = "dev"

    # Ticketing API
    ticketing_base_url: str = DEFAULT_BASE_URL
    agent_id: str = ""
    application_id: str = ""
    api_username: str = ""
    api_password: str = field(default="", repr=False)
    http_timeout_seconds: float = 30.0
    http_retries: int = 2

    # Sync cycle
    page_size: int = 100
    page_attempts: int = 3
    lookback_days: int = 1
    timezone: str = "Asia/Jakarta"
    batch_queue_url: Optional[str] = None

    # Worker
    enrichment_concurrency: int = 20
    lookup_refresh_seconds: int = 900
    sla_thresholds_hours: Dict[str, float] = field(
        default_factory=lambda: parse_sla_thresholds(DEFAULT_SLA_THRESHOLDS)
    )

    # Export ingestion
    export_batch_size: int = 500

    @classmethod
    def from_environment(cls, env: Optional[Mapping[str, str]] = None) -> "PipelineSettings":
        """Load settings from environment variables."""
        env = os.environ if env is None else env

        username = env.get("TICKETING_USERNAME", "")
        password = env.get("TICKETING_PASSWORD", "")
        secret_arn = env.get("TICKETING_SECRET_ARN")
        if secret_arn:
            creds = _load_api_secret(secret_arn)
            username, password = creds["username"], creds["password"]

        settings = cls(
            environment=env.get("ENVIRONMENT", "dev"),
            ticketing_base_url=env.get("TICKETING_BASE_URL", DEFAULT_BASE_URL).rstrip("/"),
            agent_id=env.get("TICKETING_AGENT_ID", ""),
            application_id=env.get("TICKETING_APPLICATION_ID", ""),
            api_username=username,
            api_password=password,
            http_timeout_seconds=_float_env(env, "HTTP_TIMEOUT_SECONDS", 30.0),
            http_retries=_int_env(env, "HTTP_RETRIES", 2),
            page_size=_int_env(env, "SYNC_PAGE_SIZE", 100),
            page_attempts=_int_env(env, "SYNC_PAGE_ATTEMPTS", 3),
            lookback_days=_int_env(env, "SYNC_LOOKBACK_DAYS", 1),
            timezone=env.get("SYNC_TIMEZONE", "Asia/Jakarta"),
            batch_queue_url=env.get("BATCH_QUEUE_URL") or None,
            enrichment_concurrency=_int_env(env, "ENRICHMENT_CONCURRENCY", 20),
            lookup_refresh_seconds=_int_env(env, "LOOKUP_REFRESH_SECONDS", 900),
            sla_thresholds_hours=parse_sla_thresholds(
                env.get("SLA_THRESHOLDS_HOURS", DEFAULT_SLA_THRESHOLDS)
            ),
            export_batch_size=_int_env(env, "EXPORT_BATCH_SIZE", 500),
        )
        logger.info(
            "Pipeline settings loaded",
            extra={
                "environment": settings.environment,
                "page_size": settings.page_size,
                "enrichment_concurrency": settings.enrichment_concurrency,
            },
        )
        return settings
