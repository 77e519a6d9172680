"""Newsletter subscriber models."""
import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, DateTime, Enum as SQLEnum, String, func
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database import Base


class SubscriberStatus(str, Enum):
    ACTIVE = "active"
    UNSUBSCRIBED = "unsubscribed"


class Subscriber(Base):
    __tablename__ = "subscribers"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    # Stored lower-cased and trimmed; the only natural key
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    status: Mapped[SubscriberStatus] = mapped_column(
        SQLEnum(SubscriberStatus, values_callable=lambda x: [e.value for e in x]),
        default=SubscriberStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    source: Mapped[str] = mapped_column(String(100), default="unknown", nullable=False)
    preferences: Mapped[dict] = mapped_column(
        JSON,
        default=lambda: {"segments": []},
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    @property
    def segments(self) -> frozenset[str]:
        raw = (self.preferences or {}).get("segments") or []
        return frozenset(s for s in raw if isinstance(s, str) and s)

    @property
    def is_active(self) -> bool:
        return self.status == SubscriberStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<Subscriber(id={self.id}, email={self.email}, status={self.status.value})>"
