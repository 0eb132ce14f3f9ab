"""
SQS adapter - AWS SQS queue operations.

Provides:
- Event publishing to the job queue
- Message receiving and deletion for the worker
- Visibility extension for long-running jobs

Message body:
    {"name": "snapshot-scrape.requested", "data": {...}}

Scheduled triggers (EventBridge rules) post the same shape with
``guest-retention-cleanup`` / ``archive-reminder-dispatch`` names.
"""

import asyncio
import json
import logging
from typing import Optional, Dict, Any, List
from dataclasses import dataclass

import boto3
from botocore.exceptions import ClientError

from socialvault.config.settings import settings
from socialvault.shared.core.exceptions import UpstreamServiceError

logger = logging.getLogger(__name__)


@dataclass
class QueueMessage:
    """Received SQS message."""

    message_id: str
    receipt_handle: str
    body: Dict[str, Any]
    attributes: Dict[str, str]

    @property
    def event_name(self) -> Optional[str]:
        name = self.body.get("name")
        return name if isinstance(name, str) else None

    @property
    def event_data(self) -> Dict[str, Any]:
        data = self.body.get("data")
        return data if isinstance(data, dict) else {}

    @property
    def receive_count(self) -> int:
        """How many times SQS has delivered this message (1 on first delivery)."""
        try:
            return max(1, int(self.attributes.get("ApproximateReceiveCount", "1")))
        except ValueError:
            return 1


class SQSAdapter:
    """
    Adapter for AWS SQS operations.

    Handles:
    - Publishing job events from the API
    - Receiving messages for the worker
    - Message deletion after processing
    """

    def __init__(
        self,
        queue_url: Optional[str] = None,
        region: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
    ):
        """
        Initialize SQS adapter.

        Args:
            queue_url: Job queue URL (defaults to SQS_JOB_QUEUE_URL)
            region: AWS region
            aws_access_key_id: AWS access key
            aws_secret_access_key: AWS secret key
        """
        self.queue_url = queue_url or settings.SQS_JOB_QUEUE_URL
        self.region = region or settings.AWS_REGION
        self.aws_access_key_id = aws_access_key_id or settings.AWS_ACCESS_KEY_ID
        self.aws_secret_access_key = aws_secret_access_key or settings.AWS_SECRET_ACCESS_KEY
        self._client = None

    @property
    def client(self):
        """Lazy-loaded SQS client."""
        if self._client is None:
            if self.aws_access_key_id and self.aws_secret_access_key:
                self._client = boto3.client(
                    "sqs",
                    region_name=self.region,
                    aws_access_key_id=self.aws_access_key_id,
                    aws_secret_access_key=self.aws_secret_access_key,
                )
            else:
                # Use default credentials (IAM role, environment, etc.)
                self._client = boto3.client("sqs", region_name=self.region)
        return self._client

    # ═══════════════════════════════════════════════════════════════════════════
    # PUBLISH
    # ═══════════════════════════════════════════════════════════════════════════

    def send_message(
        self,
        message_body: Dict[str, Any],
        delay_seconds: int = 0,
    ) -> str:
        """
        Send a message to the job queue.

        Args:
            message_body: Message payload (will be JSON serialized)
            delay_seconds: Delay before message becomes available

        Returns:
            Message ID
        """
        try:
            response = self.client.send_message(
                QueueUrl=self.queue_url,
                MessageBody=json.dumps(message_body),
                DelaySeconds=delay_seconds,
            )
            message_id = response["MessageId"]

            logger.info(f"Sent message {message_id} ({message_body.get('name')})")
            return message_id

        except ClientError as e:
            logger.error(f"Failed to send message to {self.queue_url}: {e}")
            raise

    async def publish_event(self, name: str, data: Dict[str, Any]) -> str:
        """
        Publish a job event.

        Args:
            name: Event name (see JobEventName)
            data: JSON-serializable event data

        Returns:
            Message ID

        Raises:
            UpstreamServiceError: If SQS rejects the message
        """
        try:
            return await asyncio.to_thread(self.send_message, {"name": name, "data": data})
        except ClientError as e:
            raise UpstreamServiceError("job_queue", "Failed to queue backup job") from e

    # ═══════════════════════════════════════════════════════════════════════════
    # CONSUME
    # ═══════════════════════════════════════════════════════════════════════════

    def receive_messages(
        self,
        max_messages: int = 10,
        wait_time_seconds: int = 20,
        visibility_timeout: int = 900,
    ) -> List[QueueMessage]:
        """
        Receive messages from the job queue.

        Args:
            max_messages: Maximum messages to receive (1-10)
            wait_time_seconds: Long polling wait time
            visibility_timeout: Time message is hidden from other consumers

        Returns:
            List of QueueMessage objects
        """
        try:
            response = self.client.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=min(max_messages, 10),
                WaitTimeSeconds=wait_time_seconds,
                VisibilityTimeout=visibility_timeout,
                MessageAttributeNames=["All"],
                AttributeNames=["All"],
            )

            messages = []
            for msg in response.get("Messages", []):
                try:
                    body = json.loads(msg["Body"])
                except json.JSONDecodeError:
                    body = {"raw": msg["Body"]}
                if not isinstance(body, dict):
                    body = {"raw": body}

                messages.append(
                    QueueMessage(
                        message_id=msg["MessageId"],
                        receipt_handle=msg["ReceiptHandle"],
                        body=body,
                        attributes=msg.get("Attributes", {}),
                    )
                )

            return messages

        except ClientError as e:
            logger.error(f"Failed to receive messages from {self.queue_url}: {e}")
            raise

    def delete_message(self, receipt_handle: str) -> None:
        """
        Delete a message from the queue.

        Call this after successful processing or once retries are exhausted.
        """
        try:
            self.client.delete_message(
                QueueUrl=self.queue_url,
                ReceiptHandle=receipt_handle,
            )
            logger.debug(f"Deleted message from {self.queue_url}")

        except ClientError as e:
            logger.error(f"Failed to delete message: {e}")
            raise

    def change_message_visibility(
        self,
        receipt_handle: str,
        visibility_timeout: int,
    ) -> None:
        """
        Change visibility timeout for a message.

        A timeout of 0 makes a failed message visible again immediately.
        """
        try:
            self.client.change_message_visibility(
                QueueUrl=self.queue_url,
                ReceiptHandle=receipt_handle,
                VisibilityTimeout=visibility_timeout,
            )

        except ClientError as e:
            logger.error(f"Failed to change message visibility: {e}")
            raise


# Singleton instance
_sqs_adapter: Optional[SQSAdapter] = None


def get_sqs_adapter() -> SQSAdapter:
    """Get or create SQS adapter singleton."""
    global _sqs_adapter
    if _sqs_adapter is None:
        _sqs_adapter = SQSAdapter()
    return _sqs_adapter
