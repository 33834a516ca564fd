"""
Main CDK Stack for the ticket sync pipeline.
"""

from aws_cdk import (
    Stack,
    Tags,
    CfnOutput,
)
from constructs import Construct

from infrastructure.constructs.data_layer import DataLayerConstruct
from infrastructure.constructs.sync_pipeline import SyncPipelineConstruct
from infrastructure.config.settings import Settings


class TicketSyncStack(Stack):
    """Main stack wiring all constructs together."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        settings: Settings,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        # Global tags for cost/accounting.
        Tags.of(self).add("Project", "ticket-sync")
        Tags.of(self).add("Environment", settings.environment)
        Tags.of(self).add("CostCenter", "support-reporting")
        Tags.of(self).add("ManagedBy", "cdk")

        # 1) Network + ticket store.
        data_construct = DataLayerConstruct(
            self,
            "DataLayer",
            environment=settings.environment,
            db_instance_class=settings.db_instance_class,
            db_allocated_storage=settings.db_allocated_storage,
        )

        # 2) Schedule, queue and Lambdas.
        pipeline_construct = SyncPipelineConstruct(
            self,
            "SyncPipeline",
            environment=settings.environment,
            vpc=data_construct.vpc,
            security_group=data_construct.lambda_security_group,
            db_secret=data_construct.db_secret,
            schedule_minute=settings.sync_schedule_minute,
            schedule_hour=settings.sync_schedule_hour,
            page_size=settings.sync_page_size,
            lookback_days=settings.sync_lookback_days,
            enrichment_concurrency=settings.enrichment_concurrency,
            lambda_memory_mb=settings.lambda_memory_mb,
            sync_timeout_seconds=settings.sync_timeout_seconds,
            worker_timeout_seconds=settings.worker_timeout_seconds,
            worker_batch_size=settings.worker_batch_size,
            max_receive_count=settings.max_receive_count,
        )

        # Outputs to quickly find resources.
        CfnOutput(self, "DatabaseEndpoint", value=data_construct.db_instance.db_instance_endpoint_address)
        CfnOutput(self, "BatchQueueUrl", value=pipeline_construct.batch_queue.queue_url)
        CfnOutput(self, "DeadLetterQueueUrl", value=pipeline_construct.dead_letter_queue.queue_url)
        CfnOutput(self, "TicketingApiSecretArn", value=pipeline_construct.api_secret.secret_arn)
        CfnOutput(self, "ExportIngestionFunction", value=pipeline_construct.export_fn.function_name)
