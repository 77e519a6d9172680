"""Newsletter issue and engagement event models."""
import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SQLEnum, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from src.core.database import Base


class NewsletterStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"


class NewsletterEventType(str, Enum):
    OPEN = "OPEN"


class Newsletter(Base):
    """A newsletter issue. Authored elsewhere; read here and marked sent."""

    __tablename__ = "newsletters"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    subject: Mapped[str | None] = mapped_column(String(300), nullable=True)
    slug: Mapped[str | None] = mapped_column(String(200), unique=True, nullable=True, index=True)
    preview_text: Mapped[str | None] = mapped_column(String(500), nullable=True)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[NewsletterStatus] = mapped_column(
        SQLEnum(NewsletterStatus, values_callable=lambda x: [e.value for e in x]),
        default=NewsletterStatus.DRAFT,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Newsletter(id={self.id}, slug={self.slug}, status={self.status.value})>"


class NewsletterEvent(Base):
    """One engagement signal. Repeated opens by the same reader are separate rows."""

    __tablename__ = "newsletter_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    newsletter_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    recipient_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    type: Mapped[NewsletterEventType] = mapped_column(
        SQLEnum(NewsletterEventType, values_callable=lambda x: [e.value for e in x]),
        default=NewsletterEventType.OPEN,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<NewsletterEvent(newsletter_id={self.newsletter_id}, type={self.type.value})>"
