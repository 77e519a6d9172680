"""
Outbound email transports.

Supported providers:
- Resend (SDK, default)
- SMTP relay

In development with no credentials configured, messages are logged instead.
"""

from src.core.config import Settings, settings as default_settings
from src.core.exceptions import ExternalServiceError
from src.integrations.email.base import (
    BaseEmailTransport,
    EmailMessage,
    LoggingTransport,
    SendResult,
)
from src.integrations.email.resend import ResendTransport
from src.integrations.email.smtp import SmtpTransport


def get_email_transport(config: Settings | None = None) -> BaseEmailTransport:
    """Build the transport named by EMAIL_PROVIDER."""
    config = config or default_settings

    if config.EMAIL_PROVIDER == "smtp":
        if config.SMTP_USER or config.ENVIRONMENT != "development":
            return SmtpTransport(
                host=config.SMTP_HOST,
                port=config.SMTP_PORT,
                user=config.SMTP_USER,
                password=config.SMTP_PASSWORD,
            )
        return LoggingTransport()

    if config.RESEND_API_KEY:
        return ResendTransport(api_key=config.RESEND_API_KEY)
    if config.ENVIRONMENT == "development":
        return LoggingTransport()

    raise ExternalServiceError("resend", "RESEND_API_KEY is not set.")


__all__ = [
    "BaseEmailTransport",
    "EmailMessage",
    "LoggingTransport",
    "ResendTransport",
    "SendResult",
    "SmtpTransport",
    "get_email_transport",
]
