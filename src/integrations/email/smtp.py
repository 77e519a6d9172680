"""SMTP relay transport."""
import asyncio
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parseaddr
from typing import Optional

import structlog

from src.integrations.email.base import BaseEmailTransport, EmailMessage, SendResult

logger = structlog.get_logger()


class SmtpTransport(BaseEmailTransport):
    """Sends through an SMTP relay with STARTTLS. Blocking I/O runs in a worker thread."""

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.timeout = timeout

    def _build(self, message: EmailMessage) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = message.from_email
        msg["To"] = message.to
        for header, value in message.all_headers().items():
            msg[header] = value

        msg.attach(MIMEText(message.rendered_html(), "html", "utf-8"))
        return msg

    def _send_blocking(self, message: EmailMessage) -> SendResult:
        msg = self._build(message)
        envelope_from = parseaddr(message.from_email)[1] or message.from_email

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                refused = server.sendmail(envelope_from, [message.to], msg.as_string())
        except smtplib.SMTPException as e:
            logger.error("SMTP send failed", to=message.to, error=str(e))
            return SendResult(ok=False, error=str(e))

        if refused:
            return SendResult(ok=False, error=str(refused.get(message.to, refused)))
        return SendResult(ok=True)

    async def send(self, message: EmailMessage) -> SendResult:
        return await asyncio.to_thread(self._send_blocking, message)
