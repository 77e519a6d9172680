"""Resend transport."""
import asyncio

import resend
import structlog
from resend.exceptions import ResendError

from src.integrations.email.base import BaseEmailTransport, EmailMessage, SendResult

logger = structlog.get_logger()


class ResendTransport(BaseEmailTransport):
    """Sends one message per call through the Resend SDK. The SDK is blocking, so calls run in a worker thread."""

    name = "resend"

    def __init__(self, api_key: str):
        self.api_key = api_key

    def _params(self, message: EmailMessage) -> dict:
        params = {
            "from": message.from_email,
            "to": [message.to],
            "subject": message.subject,
            "html": message.rendered_html(),
        }
        headers = message.all_headers()
        if headers:
            params["headers"] = headers
        return params

    def _send_blocking(self, message: EmailMessage) -> SendResult:
        # The SDK reads its key from module state
        resend.api_key = self.api_key
        try:
            response = resend.Emails.send(self._params(message))
        except ResendError as e:
            logger.warning("Resend rejected message", to=message.to, error=str(e))
            return SendResult(ok=False, error=str(e))

        message_id = response.get("id") if response else None
        if not message_id:
            logger.warning("Resend returned no message id", to=message.to, response=response)
            return SendResult(ok=False, error=f"unexpected response: {response}")
        return SendResult(ok=True, message_id=message_id)

    async def send(self, message: EmailMessage) -> SendResult:
        return await asyncio.to_thread(self._send_blocking, message)
