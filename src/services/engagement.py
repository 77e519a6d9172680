"""Open tracking and newsletter engagement statistics."""
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from src.models.newsletter import Newsletter, NewsletterEvent, NewsletterEventType

logger = structlog.get_logger()

# Stand-in for opens that arrived without a recipient id
ANONYMOUS_RECIPIENT = ""


@dataclass
class NewsletterEngagement:
    newsletter_id: str
    subject: str | None
    sent_at: datetime | None
    total_opens: int
    unique_opens: int


class EngagementRecorder:
    """Records beacon hits. Recording never raises to the caller."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def record_open(self, newsletter_id: str | None, recipient_id: str | None = None) -> bool:
        """
        Insert an OPEN event. Returns whether the row was written.

        Every hit is stored, including repeats from the same recipient.
        """
        newsletter_id = (newsletter_id or "").strip()
        recipient_id = (recipient_id or "").strip() or None
        if not newsletter_id:
            return False

        try:
            self.db.add(
                NewsletterEvent(
                    newsletter_id=newsletter_id,
                    recipient_id=recipient_id,
                    type=NewsletterEventType.OPEN,
                )
            )
            await self.db.commit()
        except Exception as e:
            logger.error(
                "Failed to record newsletter open",
                newsletter_id=newsletter_id,
                recipient_id=recipient_id,
                error=str(e),
            )
            try:
                await self.db.rollback()
            except Exception as rollback_error:
                logger.warning("Rollback after failed open write also failed", error=str(rollback_error))
            return False

        return True


class EngagementStats:
    """Read side over newsletter_events."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _opens_query(self):
        # NULL recipients collapse into a single anonymous reader
        recipient = func.coalesce(NewsletterEvent.recipient_id, ANONYMOUS_RECIPIENT)
        return (
            select(
                NewsletterEvent.newsletter_id,
                func.count(NewsletterEvent.id).label("total_opens"),
                func.count(distinct(recipient)).label("unique_opens"),
            )
            .where(NewsletterEvent.type == NewsletterEventType.OPEN)
            .group_by(NewsletterEvent.newsletter_id)
        )

    async def for_newsletter(self, newsletter_id: str) -> NewsletterEngagement:
        result = await self.db.execute(
            self._opens_query().where(NewsletterEvent.newsletter_id == newsletter_id)
        )
        row = result.one_or_none()

        newsletter = await self.db.get(Newsletter, newsletter_id)
        return NewsletterEngagement(
            newsletter_id=newsletter_id,
            subject=newsletter.subject if newsletter else None,
            sent_at=newsletter.sent_at if newsletter else None,
            total_opens=row.total_opens if row else 0,
            unique_opens=row.unique_opens if row else 0,
        )

    async def top_newsletters(self, limit: int = 20) -> list[NewsletterEngagement]:
        """Newsletters ordered by total opens, most opened first."""
        opens = self._opens_query().subquery()
        result = await self.db.execute(
            select(
                opens.c.newsletter_id,
                opens.c.total_opens,
                opens.c.unique_opens,
                Newsletter.subject,
                Newsletter.sent_at,
            )
            .select_from(opens)
            .outerjoin(Newsletter, Newsletter.id == opens.c.newsletter_id)
            .order_by(opens.c.total_opens.desc(), opens.c.newsletter_id)
            .limit(limit)
        )

        return [
            NewsletterEngagement(
                newsletter_id=row.newsletter_id,
                subject=row.subject,
                sent_at=row.sent_at,
                total_opens=row.total_opens,
                unique_opens=row.unique_opens,
            )
            for row in result.all()
        ]
