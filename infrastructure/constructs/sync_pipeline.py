"""
Sync pipeline: EventBridge schedule -> sync Lambda -> SQS FIFO -> worker Lambda.

Failed batch jobs are redelivered by SQS and parked in a DLQ after
``max_receive_count`` attempts. The export ingestion Lambda shares the
same code asset and database access.
"""

from aws_cdk import (
    BundlingOptions,
    Duration,
    aws_ec2 as ec2,
    aws_events as events,
    aws_events_targets as targets,
    aws_lambda as _lambda,
    aws_lambda_event_sources as event_sources,
    aws_logs as logs,
    aws_secretsmanager as secretsmanager,
    aws_sqs as sqs,
)
from constructs import Construct


class SyncPipelineConstruct(Construct):
    """Provision the scheduler, the work queue and the pipeline Lambdas."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        environment: str,
        vpc: ec2.IVpc,
        security_group: ec2.ISecurityGroup,
        db_secret: secretsmanager.ISecret,
        schedule_minute: str,
        schedule_hour: str,
        page_size: int,
        lookback_days: int,
        enrichment_concurrency: int,
        lambda_memory_mb: int = 512,
        sync_timeout_seconds: int = 300,
        worker_timeout_seconds: int = 180,
        worker_batch_size: int = 1,
        max_receive_count: int = 3,
    ) -> None:
        super().__init__(scope, construct_id)

        # Static credentials for the ticketing API; filled in by an operator.
        self.api_secret = secretsmanager.Secret(
            self,
            "TicketingApiCredentials",
            generate_secret_string=secretsmanager.SecretStringGenerator(
                secret_string_template='{"username": ""}',
                generate_string_key="password",
            ),
        )

        self.dead_letter_queue = sqs.Queue(
            self,
            "BatchJobsDlq",
            fifo=True,
            retention_period=Duration.days(14),
        )
        self.batch_queue = sqs.Queue(
            self,
            "BatchJobsQueue",
            fifo=True,
            # SQS recommends at least 6x the consumer timeout.
            visibility_timeout=Duration.seconds(worker_timeout_seconds * 6),
            dead_letter_queue=sqs.DeadLetterQueue(
                max_receive_count=max_receive_count, queue=self.dead_letter_queue
            ),
        )

        # Bundle Lambda code with dependencies using Docker (works in CI/CD)
        bundled_code = _lambda.Code.from_asset(
            "src",
            bundling=BundlingOptions(
                image=_lambda.Runtime.PYTHON_3_12.bundling_image,
                command=[
                    "bash", "-c",
                    "pip install -r requirements-lambda.txt -t /asset-output && "
                    "cp -r . /asset-output"
                ],
            ),
        )

        shared_env = {
            "ENVIRONMENT": environment,
            "DB_SECRET_ARN": db_secret.secret_arn,
            "SYNC_PAGE_SIZE": str(page_size),
            "SYNC_LOOKBACK_DAYS": str(lookback_days),
            "ENRICHMENT_CONCURRENCY": str(enrichment_concurrency),
            "LOG_LEVEL": "INFO",
        }
        # Only the Lambdas that call the ticketing API get its credentials.
        api_env = {**shared_env, "TICKETING_SECRET_ARN": self.api_secret.secret_arn}
        common_lambda_kwargs = dict(
            runtime=_lambda.Runtime.PYTHON_3_12,
            code=bundled_code,
            memory_size=lambda_memory_mb,
            architecture=_lambda.Architecture.X86_64,
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
            security_groups=[security_group],
            log_retention=logs.RetentionDays.ONE_WEEK,
        )

        self.sync_fn = _lambda.Function(
            self,
            "TicketSyncHandler",
            handler="handlers.ticket_sync.lambda_handler",
            timeout=Duration.seconds(sync_timeout_seconds),
            environment={**api_env, "BATCH_QUEUE_URL": self.batch_queue.queue_url},
            # Cycles must not overlap; they share the cursor.
            reserved_concurrent_executions=1,
            **common_lambda_kwargs,
        )
        self.worker_fn = _lambda.Function(
            self,
            "TicketBatchHandler",
            handler="handlers.ticket_batch.lambda_handler",
            timeout=Duration.seconds(worker_timeout_seconds),
            environment=api_env,
            **common_lambda_kwargs,
        )
        self.export_fn = _lambda.Function(
            self,
            "ExportIngestionHandler",
            handler="handlers.export_ingestion.lambda_handler",
            timeout=Duration.seconds(worker_timeout_seconds),
            environment=shared_env,
            **common_lambda_kwargs,
        )

        for fn in (self.sync_fn, self.worker_fn, self.export_fn):
            db_secret.grant_read(fn)
        self.api_secret.grant_read(self.sync_fn)
        self.api_secret.grant_read(self.worker_fn)
        self.batch_queue.grant_send_messages(self.sync_fn)

        self.worker_fn.add_event_source(
            event_sources.SqsEventSource(
                self.batch_queue,
                batch_size=worker_batch_size,
                report_batch_item_failures=True,
            )
        )

        events.Rule(
            self,
            "TicketSyncSchedule",
            schedule=events.Schedule.cron(minute=schedule_minute, hour=schedule_hour),
            targets=[targets.LambdaFunction(self.sync_fn)],
        )
