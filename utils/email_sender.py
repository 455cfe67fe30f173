"""SES integration for sending transactional booking emails."""

import json
import logging
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from schemas.notifications import EmailMessage


class EmailSendError(Exception):
    """Raised when SES rejects or cannot deliver a message."""


def render_template_text(message: EmailMessage) -> str:
    """
    Render a plain-text body for a template id and its data.

    Template markup lives outside the core; the body carries the template id
    and the data the template consumes so the mail is still useful as-is.
    """
    lines = [f"[{message.template}]"]
    if message.name:
        lines.append(f"Hej {message.name},")
    for key, value in sorted(message.data.items()):
        lines.append(f"{key}: {_display(value)}")
    return "\n".join(lines)


def _display(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


class SesEmailSender:
    """Service for sending emails via AWS SES."""

    def __init__(
        self,
        region: str,
        from_email: str,
        from_name: str,
        client: Optional[Any] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.client = client or boto3.client("ses", region_name=region)
        self.from_email = from_email
        self.from_name = from_name
        self.logger = logger or logging.getLogger(__name__)

    def send(self, message: EmailMessage) -> str:
        """
        Send one email.

        Returns:
            SES message ID

        Raises:
            EmailSendError: If SES refuses the request
        """
        source = f"{self.from_name} <{self.from_email}>"
        params = {
            "Source": source,
            "Destination": {"ToAddresses": [message.to]},
            "Message": {
                "Subject": {"Data": message.subject, "Charset": "utf-8"},
                "Body": {"Text": {"Data": render_template_text(message), "Charset": "utf-8"}},
            },
        }
        try:
            response = self.client.send_email(**params)
        except (ClientError, BotoCoreError) as e:
            raise EmailSendError(f"Email send failed: {e}") from e

        message_id = response["MessageId"]
        self.logger.info(f"Email sent: {message_id} to={message.to} template={message.template}")
        return message_id
