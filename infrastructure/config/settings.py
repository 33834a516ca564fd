"""
Environment-specific configuration settings.

Cost-optimized defaults for development/testing.
"""

from dataclasses import dataclass
import os


@dataclass
class Settings:
    """Deployment settings with cost-optimized defaults."""

    # Environment
    environment: str = "dev"
    aws_region: str = "ap-southeast-3"  # Jakarta, next to the ticketing API

    # Database Configuration (Cost-optimized)
    db_instance_class: str = "t3.micro"  # Free tier eligible
    db_allocated_storage: int = 20  # Minimum GB

    # Sync schedule (EventBridge cron, UTC); hourly like the source scheduler
    sync_schedule_minute: str = "0"
    sync_schedule_hour: str = "*"
    sync_page_size: int = 100
    sync_lookback_days: int = 1

    # Lambda Configuration
    lambda_memory_mb: int = 512
    sync_timeout_seconds: int = 300
    worker_timeout_seconds: int = 180
    worker_batch_size: int = 1  # one page-sized job per invocation
    enrichment_concurrency: int = 20

    # Queue
    max_receive_count: int = 3  # attempts before a job moves to the DLQ

    @classmethod
    def from_environment(cls) -> "Settings":
        """Load settings from environment variables."""
        env = os.environ.get("ENVIRONMENT", "dev")
        region = os.environ.get("AWS_REGION", cls.aws_region)

        # Production overrides
        if env == "prod":
            return cls(
                environment="prod",
                aws_region=region,
                db_instance_class="t3.small",  # Upgrade for prod
                db_allocated_storage=50,
                lambda_memory_mb=1024,
                enrichment_concurrency=40,
                max_receive_count=5,
            )

        return cls(environment=env, aws_region=region)
