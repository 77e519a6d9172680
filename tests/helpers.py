"""Shared test doubles and factories."""
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from src.integrations.email.base import BaseEmailTransport, EmailMessage, SendResult
from src.models.subscriber import Subscriber, SubscriberStatus

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeTransport(BaseEmailTransport):
    """Records every message; fails or raises for configured addresses."""

    name = "fake"

    def __init__(self, fail_for=(), raise_for=()):
        self.sent: list[EmailMessage] = []
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)

    async def send(self, message: EmailMessage) -> SendResult:
        self.sent.append(message)
        if message.to in self.raise_for:
            raise ConnectionError(f"connection reset sending to {message.to}")
        if message.to in self.fail_for:
            return SendResult(ok=False, error="422: rejected")
        return SendResult(ok=True, message_id=f"msg-{len(self.sent)}")


class FakeClock:
    """Monotonic clock that only moves when the fake sleep is awaited."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


async def no_sleep(seconds: float) -> None:
    return None


async def make_subscriber(
    session: AsyncSession,
    email: str,
    *,
    status: SubscriberStatus = SubscriberStatus.ACTIVE,
    source: str = "website",
    segments: list[str] | None = None,
    offset: int = 0,
) -> Subscriber:
    """Insert a subscriber with a deterministic created_at."""
    subscriber = Subscriber(
        email=email,
        status=status,
        source=source,
        preferences={"segments": segments if segments is not None else ["newsletter"]},
        created_at=BASE_TIME + timedelta(minutes=offset),
    )
    session.add(subscriber)
    await session.commit()
    await session.refresh(subscriber)
    return subscriber
