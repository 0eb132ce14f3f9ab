"""
Email adapter - transactional email through Amazon SES (v2 API).

Provides:
- send(to, subject, text, html)

Callers decide whether a failure matters: reminder delivery records it on
the job, admin notifications swallow it.
"""

import asyncio
import logging
from typing import Optional, Sequence, Union

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from socialvault.config.settings import settings
from socialvault.shared.core.exceptions import UpstreamServiceError

logger = logging.getLogger(__name__)


class SESEmailAdapter:
    """
    Adapter for Amazon SES.

    Handles:
    - Simple (subject + text + html) messages
    - Single or multiple recipients
    """

    def __init__(
        self,
        from_address: Optional[str] = None,
        region: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
    ):
        self.from_address = from_address or settings.EMAIL_FROM_ADDRESS
        self.region = region or settings.AWS_REGION
        self.aws_access_key_id = aws_access_key_id or settings.AWS_ACCESS_KEY_ID
        self.aws_secret_access_key = aws_secret_access_key or settings.AWS_SECRET_ACCESS_KEY
        self._client = None

    @property
    def client(self):
        """Lazy-loaded SES v2 client."""
        if self._client is None:
            if self.aws_access_key_id and self.aws_secret_access_key:
                self._client = boto3.client(
                    "sesv2",
                    region_name=self.region,
                    aws_access_key_id=self.aws_access_key_id,
                    aws_secret_access_key=self.aws_secret_access_key,
                )
            else:
                self._client = boto3.client("sesv2", region_name=self.region)
        return self._client

    async def send(
        self,
        to: Union[str, Sequence[str]],
        subject: str,
        text: str,
        html: Optional[str] = None,
    ) -> str:
        """
        Send one email.

        Args:
            to: Recipient address or addresses
            subject: Subject line
            text: Plain-text body
            html: Optional HTML body

        Returns:
            SES message id

        Raises:
            UpstreamServiceError: If SES rejects the message
        """
        recipients = [to] if isinstance(to, str) else list(to)
        body = {"Text": {"Data": text, "Charset": "UTF-8"}}
        if html:
            body["Html"] = {"Data": html, "Charset": "UTF-8"}

        try:
            response = await asyncio.to_thread(
                self.client.send_email,
                FromEmailAddress=self.from_address,
                Destination={"ToAddresses": recipients},
                Content={
                    "Simple": {
                        "Subject": {"Data": subject, "Charset": "UTF-8"},
                        "Body": body,
                    }
                },
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to send email '{subject}': {e}")
            raise UpstreamServiceError("email", "Failed to send email") from e

        message_id = response.get("MessageId", "")
        logger.info(f"Sent email {message_id} '{subject}'")
        return message_id


# Singleton instance
_email_adapter: Optional[SESEmailAdapter] = None


def get_email_adapter() -> SESEmailAdapter:
    """Get or create the SES adapter singleton."""
    global _email_adapter
    if _email_adapter is None:
        _email_adapter = SESEmailAdapter()
    return _email_adapter
