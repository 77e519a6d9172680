"""Broadcast orchestration: resolve issue and audience, dispatch, mark sent."""
import asyncio
import re
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from src.core.config import settings
from src.core.exceptions import (
    AuthenticationError,
    BroadcastError,
    ExternalServiceError,
    ResourceNotFound,
)
from src.core.security import AuthContext
from src.integrations.email.base import SendResult
from src.models.newsletter import Newsletter, NewsletterStatus
from src.services.audience import AudienceResolver, AudienceTarget
from src.services.delivery import DeliveryReport
from src.services.dispatcher import NewsletterIssue, RateLimitedDispatcher, Recipient
from src.services.preferences import is_valid_email, normalize_email
from src.services.registry import SubscriberRegistry
from src.services.subscription import PREVIEW_SUBSCRIBER_ID

logger = structlog.get_logger()

UUID_REGEX = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


class BroadcastService:
    """Operator-facing broadcast and test-send operations."""

    def __init__(
        self,
        db: AsyncSession,
        dispatcher: RateLimitedDispatcher,
        base_url: str | None = None,
        from_email: str | None = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.registry = SubscriberRegistry(db)
        self.audience = AudienceResolver(self.registry)
        self.base_url = base_url or settings.SITE_URL
        self.from_email = from_email or settings.NEWSLETTER_FROM_EMAIL

    async def get_newsletter(self, slug_or_id: str) -> Newsletter | None:
        """Look a newsletter up by UUID id, or by slug otherwise."""
        column = Newsletter.id if UUID_REGEX.match(slug_or_id) else Newsletter.slug
        result = await self.db.execute(select(Newsletter).where(column == slug_or_id))
        return result.scalar_one_or_none()

    async def _require_newsletter(self, slug_or_id: str) -> Newsletter:
        newsletter = await self.get_newsletter(slug_or_id)
        if newsletter is None:
            raise ResourceNotFound("Newsletter", slug_or_id)
        return newsletter

    async def broadcast(
        self,
        slug_or_id: str,
        auth: AuthContext,
        target: AudienceTarget | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> DeliveryReport:
        """
        Send an issue to its audience and mark it sent.

        Runs to completion before returning; wall-clock time grows with the
        recipient count times the dispatcher interval.
        """
        if not auth.is_authorized:
            raise AuthenticationError()

        newsletter = await self._require_newsletter(slug_or_id)
        subscribers = await self.audience.resolve(target)
        recipients = [Recipient.from_subscriber(s) for s in subscribers if s.email]
        if not recipients:
            raise BroadcastError("No active subscribers.")

        issue = NewsletterIssue.from_model(newsletter)
        logger.info(
            "Broadcast requested",
            newsletter_id=issue.id,
            recipients=len(recipients),
            operator=auth.operator_id,
        )
        report = await self.dispatcher.dispatch(
            issue,
            recipients,
            base_url=self.base_url,
            from_email=self.from_email,
            cancel_event=cancel_event,
        )

        if not report.cancelled:
            await self._mark_sent(newsletter)
        return report

    async def _mark_sent(self, newsletter: Newsletter) -> None:
        try:
            newsletter.status = NewsletterStatus.SENT
            newsletter.sent_at = datetime.now(timezone.utc)
            await self.db.commit()
        except Exception as e:
            # Emails are already out; the status flip is bookkeeping only
            logger.error("Emails sent but status update failed", newsletter_id=newsletter.id, error=str(e))
            await self.db.rollback()

    async def send_test(self, slug_or_id: str, email: str, auth: AuthContext) -> SendResult:
        """Send one ``[TEST]`` copy to ``email`` without throttling or open tracking."""
        if not auth.is_authorized:
            raise AuthenticationError()

        address = normalize_email(email)
        if not is_valid_email(address):
            raise BroadcastError("Please enter a valid email address.")

        newsletter = await self._require_newsletter(slug_or_id)
        issue = NewsletterIssue.from_model(newsletter)

        subscriber = await self.registry.find_by_email(address)
        recipient = Recipient(
            id=subscriber.id if subscriber else PREVIEW_SUBSCRIBER_ID,
            email=address,
        )

        message = self.dispatcher.build_message(issue, recipient, self.base_url, self.from_email)
        message.subject = f"[TEST] {message.subject}"
        message.tracking_pixel_url = None

        try:
            result = await self.dispatcher.transport.send(message)
        except Exception as e:
            logger.error("Test send raised", newsletter_id=issue.id, to=address, error=str(e))
            raise ExternalServiceError(self.dispatcher.transport.name, str(e))

        if not result.ok:
            raise ExternalServiceError(self.dispatcher.transport.name, result.error or "Send failed.")

        logger.info("Test email sent", newsletter_id=issue.id, to=address)
        return result
