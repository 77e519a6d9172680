"""Base email transport interface."""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from html import escape
from typing import Optional

import structlog

logger = structlog.get_logger()


@dataclass
class EmailMessage:
    """One outbound message to one recipient."""
    from_email: str
    to: str
    subject: str
    html: str
    preview_text: Optional[str] = None
    unsubscribe_url: Optional[str] = None
    tracking_pixel_url: Optional[str] = None
    headers: dict[str, str] = field(default_factory=dict)

    def all_headers(self) -> dict[str, str]:
        headers = dict(self.headers)
        if self.unsubscribe_url:
            headers.setdefault("List-Unsubscribe", f"<{self.unsubscribe_url}>")
        return headers

    def rendered_html(self) -> str:
        """The body with preheader, unsubscribe footer and open beacon attached."""
        parts = []
        if self.preview_text:
            parts.append(
                '<div style="display:none;max-height:0;overflow:hidden">'
                f"{escape(self.preview_text)}</div>"
            )
        parts.append(self.html)
        if self.unsubscribe_url:
            parts.append(
                '<p style="font-size:12px;color:#666">'
                f'<a href="{escape(self.unsubscribe_url, quote=True)}">Unsubscribe</a></p>'
            )
        if self.tracking_pixel_url:
            parts.append(
                f'<img src="{escape(self.tracking_pixel_url, quote=True)}" '
                'width="1" height="1" alt="" style="display:none" />'
            )
        return "\n".join(parts)


@dataclass
class SendResult:
    """Outcome reported by a transport for a single message."""
    ok: bool
    error: Optional[str] = None
    message_id: Optional[str] = None


class BaseEmailTransport(ABC):
    """
    Abstract base class for outbound email providers.

    A transport accepts one message per call and reports failure through
    ``SendResult.ok``. It may also raise; callers that fan out must treat
    an exception the same as ``ok=False``.
    """

    name: str = "base"

    @abstractmethod
    async def send(self, message: EmailMessage) -> SendResult:
        """Send a single message."""
        ...


class LoggingTransport(BaseEmailTransport):
    """Development transport: logs the message instead of sending it."""

    name = "log"

    async def send(self, message: EmailMessage) -> SendResult:
        logger.info(
            "Email would be sent (dev mode)",
            to=message.to,
            subject=message.subject,
            unsubscribe_url=message.unsubscribe_url,
        )
        return SendResult(ok=True, message_id="dev")
