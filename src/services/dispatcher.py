"""
Rate-limited broadcast dispatcher.

Sends one newsletter issue to a list of recipients strictly in order, one
message at a time, pausing before every send so the external transport
never sees more than one request per configured interval.
"""
import asyncio
import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import structlog

from src.core.config import settings
from src.integrations.email.base import BaseEmailTransport, EmailMessage
from src.services.delivery import (
    DeliveryOutcome,
    DeliveryReport,
    DeliveryResultAggregator,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class NewsletterIssue:
    id: str
    subject: str | None
    preview_text: str | None
    content: str | None
    slug: str | None

    @classmethod
    def from_model(cls, newsletter: Any) -> "NewsletterIssue":
        return cls(
            id=str(newsletter.id),
            subject=newsletter.subject,
            preview_text=newsletter.preview_text,
            content=newsletter.content,
            slug=newsletter.slug,
        )


@dataclass(frozen=True)
class Recipient:
    id: str
    email: str

    @classmethod
    def from_subscriber(cls, subscriber: Any) -> "Recipient":
        return cls(id=str(subscriber.id), email=subscriber.email)


class SendThrottle:
    """
    Pauses a fixed interval before each send.

    Also tracks when the previous send started, so consecutive starts are
    never closer than ``min_interval`` even if ``sleep`` wakes up early.
    """

    def __init__(
        self,
        min_interval: float,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval = max(min_interval, 0.0)
        self._sleep = sleep
        self._clock = clock
        self._last_start: float | None = None

    async def wait(self) -> None:
        await self._sleep(self.min_interval)
        if self._last_start is not None:
            remaining = self.min_interval - (self._clock() - self._last_start)
            if remaining > 0:
                await self._sleep(remaining)
        self._last_start = self._clock()


class RateLimitedDispatcher:
    """Drives a single broadcast through an email transport."""

    def __init__(
        self,
        transport: BaseEmailTransport,
        min_interval: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        tracking_base_url: str | None = None,
        unsubscribe_path: str | None = None,
        tracking_path: str | None = None,
    ):
        self.transport = transport
        self.min_interval = (
            settings.send_interval_seconds if min_interval is None else min_interval
        )
        self._sleep = sleep
        self._clock = clock
        self.tracking_base_url = (
            tracking_base_url or settings.TRACKING_BASE_URL or settings.PUBLIC_API_URL
        )
        self.unsubscribe_path = unsubscribe_path or settings.UNSUBSCRIBE_PATH
        self.tracking_path = tracking_path or f"{settings.API_V1_PREFIX}/tracking/open"

    def unsubscribe_url(self, base_url: str, recipient_id: str) -> str:
        return f"{base_url.rstrip('/')}{self.unsubscribe_path}?{urlencode({'id': recipient_id})}"

    def tracking_pixel_url(self, newsletter_id: str, recipient_id: str) -> str:
        root = self.tracking_base_url.rstrip("/")
        query = urlencode({"id": newsletter_id, "sub": recipient_id})
        return f"{root}{self.tracking_path}?{query}"

    def build_message(
        self,
        newsletter: NewsletterIssue,
        recipient: Recipient,
        base_url: str,
        from_email: str,
    ) -> EmailMessage:
        subject = newsletter.subject or "Newsletter"
        return EmailMessage(
            from_email=from_email,
            to=recipient.email,
            subject=subject,
            html=newsletter.content or "",
            preview_text=newsletter.preview_text or subject,
            unsubscribe_url=self.unsubscribe_url(base_url, recipient.id),
            tracking_pixel_url=self.tracking_pixel_url(newsletter.id, recipient.id),
        )

    async def _send_one(
        self,
        newsletter: NewsletterIssue,
        recipient: Recipient,
        base_url: str,
        from_email: str,
    ) -> DeliveryOutcome:
        try:
            message = self.build_message(newsletter, recipient, base_url, from_email)
            result = await self.transport.send(message)
        except Exception as e:
            logger.error(
                "Newsletter send raised",
                newsletter_id=newsletter.id,
                recipient_id=recipient.id,
                email=recipient.email,
                error=str(e),
            )
            return DeliveryOutcome(recipient_id=recipient.id, ok=False, error=str(e))

        if not result.ok:
            logger.error(
                "Newsletter send failed",
                newsletter_id=newsletter.id,
                recipient_id=recipient.id,
                email=recipient.email,
                error=result.error,
            )
            return DeliveryOutcome(recipient_id=recipient.id, ok=False, error=result.error)

        logger.info(
            "Newsletter sent",
            newsletter_id=newsletter.id,
            recipient_id=recipient.id,
            email=recipient.email,
            message_id=result.message_id,
        )
        return DeliveryOutcome(recipient_id=recipient.id, ok=True)

    async def dispatch(
        self,
        newsletter: NewsletterIssue,
        recipients: Iterable[Recipient],
        base_url: str,
        from_email: str,
        cancel_event: asyncio.Event | None = None,
    ) -> DeliveryReport:
        """
        Send ``newsletter`` to every recipient in the order given.

        Recipients are not deduplicated. A failure for one recipient is
        logged and counted; the loop always moves on to the next one.
        Setting ``cancel_event`` stops the run before the next send.
        """
        throttle = SendThrottle(self.min_interval, sleep=self._sleep, clock=self._clock)
        aggregator = DeliveryResultAggregator()

        logger.info(
            "Broadcast started",
            newsletter_id=newsletter.id,
            transport=self.transport.name,
            interval=self.min_interval,
        )

        for recipient in recipients:
            if cancel_event is not None and cancel_event.is_set():
                aggregator.cancelled = True
                logger.warning(
                    "Broadcast cancelled",
                    newsletter_id=newsletter.id,
                    processed=aggregator.processed,
                )
                break

            await throttle.wait()
            aggregator.record(await self._send_one(newsletter, recipient, base_url, from_email))

        report = aggregator.report()
        logger.info(
            "Broadcast finished",
            newsletter_id=newsletter.id,
            sent=report.sent_count,
            failed=report.error_count,
            failed_recipients=aggregator.failed_recipients,
        )
        return report
