# Import all models here for Alembic to detect them
from src.models.subscriber import Subscriber, SubscriberStatus
from src.models.newsletter import (
    Newsletter,
    NewsletterEvent,
    NewsletterEventType,
    NewsletterStatus,
)

__all__ = [
    "Subscriber",
    "SubscriberStatus",
    "Newsletter",
    "NewsletterEvent",
    "NewsletterEventType",
    "NewsletterStatus",
]
