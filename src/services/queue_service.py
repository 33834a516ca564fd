"""
Batch job queue.

Jobs go to an SQS FIFO queue. The job id doubles as the deduplication id,
so an accidental re-dispatch of the same job inside the dedup window is
dropped by the queue itself.
"""

from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from models.ticket import BatchJob
from utils.error_handling import DispatchError
from utils.logging_config import get_logger

logger = get_logger(__name__)


class SqsBatchQueue:
    """Sends batch jobs to the worker queue."""

    def __init__(self, queue_url: str, client: Optional[Any] = None):
        self.queue_url = queue_url
        self.sqs = client or boto3.client("sqs")

    def dispatch(self, job: BatchJob) -> str:
        """Send one job; returns the SQS message id. Failure is fatal for the cycle."""
        try:
            response = self.sqs.send_message(
                QueueUrl=self.queue_url,
                MessageBody=job.model_dump_json(),
                MessageDeduplicationId=job.job_id,
                MessageGroupId=job.job_id,
            )
        except (BotoCoreError, ClientError) as exc:
            raise DispatchError(f"Failed to dispatch {job.job_id}: {exc}", job_id=job.job_id) from exc

        logger.info(
            "Batch job dispatched",
            extra={"job_id": job.job_id, "page": job.page, "tickets": len(job.tickets)},
        )
        return response.get("MessageId", "")
