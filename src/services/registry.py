"""Subscriber registry: the persistence-facing side of subscriber state."""
from collections.abc import Iterable, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from src.models.subscriber import Subscriber, SubscriberStatus
from src.services.preferences import segments_to_preferences

logger = structlog.get_logger()

# target status -> statuses it may be entered from
ALLOWED_TRANSITIONS: dict[SubscriberStatus, frozenset[SubscriberStatus]] = {
    SubscriberStatus.UNSUBSCRIBED: frozenset({SubscriberStatus.ACTIVE}),
    SubscriberStatus.ACTIVE: frozenset(),
}


class DuplicateSubscriberError(Exception):
    """The store rejected an insert because the email is already registered."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Subscriber already exists: {email}")


class SubscriberRegistry:
    """Reads and writes subscriber rows. Every mutation is committed before returning."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_email(self, email: str) -> Subscriber | None:
        result = await self.db.execute(
            select(Subscriber).where(Subscriber.email == email)
        )
        return result.scalar_one_or_none()

    async def get(self, subscriber_id: str) -> Subscriber | None:
        result = await self.db.execute(
            select(Subscriber).where(Subscriber.id == subscriber_id)
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        email: str,
        source: str,
        segments: Iterable[str],
    ) -> Subscriber:
        """
        Insert a new active subscriber.

        Raises:
            DuplicateSubscriberError: the unique email constraint rejected the
                insert, typically because a concurrent request won the race.
        """
        subscriber = Subscriber(
            email=email,
            source=source,
            status=SubscriberStatus.ACTIVE,
            preferences=segments_to_preferences(segments),
        )
        self.db.add(subscriber)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise DuplicateSubscriberError(email)

        await self.db.refresh(subscriber)
        return subscriber

    async def update_preferences(self, subscriber_id: str, segments: Iterable[str]) -> bool:
        subscriber = await self.get(subscriber_id)
        if subscriber is None:
            return False

        subscriber.preferences = segments_to_preferences(segments, base=subscriber.preferences)
        await self.db.commit()
        return True

    async def set_status(self, email: str, status: SubscriberStatus) -> int:
        """Apply a status transition by email. Returns the number of rows changed."""
        return await self._transition(Subscriber.email == email, status)

    async def set_status_by_id(self, subscriber_id: str, status: SubscriberStatus) -> int:
        return await self._transition(Subscriber.id == subscriber_id, status)

    async def _transition(self, criterion, status: SubscriberStatus) -> int:
        sources = ALLOWED_TRANSITIONS[status]
        if not sources:
            return 0

        result = await self.db.execute(
            update(Subscriber)
            .where(criterion, Subscriber.status.in_(list(sources)))
            .values(status=status)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.commit()
        return result.rowcount or 0

    async def list_active(self) -> Sequence[Subscriber]:
        result = await self.db.execute(
            select(Subscriber)
            .where(Subscriber.status == SubscriberStatus.ACTIVE)
            .order_by(Subscriber.created_at, Subscriber.id)
        )
        return result.scalars().all()

    async def list_active_by_ids(self, subscriber_ids: Iterable[str]) -> Sequence[Subscriber]:
        ids = list(dict.fromkeys(subscriber_ids))
        if not ids:
            return []

        result = await self.db.execute(
            select(Subscriber)
            .where(
                Subscriber.id.in_(ids),
                Subscriber.status == SubscriberStatus.ACTIVE,
            )
            .order_by(Subscriber.created_at, Subscriber.id)
        )
        return result.scalars().all()

    async def search(self, query: str | None = None, limit: int | None = None) -> Sequence[Subscriber]:
        """All subscribers newest first, optionally filtered by email substring."""
        stmt = select(Subscriber).order_by(Subscriber.created_at.desc(), Subscriber.id)

        trimmed = (query or "").strip().lower()
        if trimmed:
            stmt = stmt.where(Subscriber.email.ilike(f"%{trimmed}%"))
        if limit:
            stmt = stmt.limit(limit)

        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def count_active(self) -> int:
        result = await self.db.execute(
            select(func.count(Subscriber.id)).where(
                Subscriber.status == SubscriberStatus.ACTIVE
            )
        )
        return result.scalar() or 0

    async def delete(self, subscriber_id: str) -> bool:
        result = await self.db.execute(
            delete(Subscriber)
            .where(Subscriber.id == subscriber_id)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.commit()
        deleted = (result.rowcount or 0) > 0
        if deleted:
            logger.info("Subscriber deleted", subscriber_id=subscriber_id)
        return deleted
