"""Subscription service: subscribe, unsubscribe and operator add/remove."""
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

import structlog

from src.core.security import AuthContext
from src.models.subscriber import SubscriberStatus
from src.services.preferences import (
    is_valid_email,
    merge_segments,
    normalize_email,
)
from src.services.registry import DuplicateSubscriberError, SubscriberRegistry

logger = structlog.get_logger()

# Unsubscribe links in test sends point at this id; it never matches a row
PREVIEW_SUBSCRIBER_ID = "test-preview-id"

MSG_SUBSCRIBED = "You're in! Check your inbox."
MSG_ALREADY_SUBSCRIBED = "You're already subscribed. Check your inbox."
MSG_EMAIL_REQUIRED = "Email is required."
MSG_EMAIL_INVALID = "Please enter a valid email address."
MSG_GENERIC_FAILURE = "Something went wrong. Please try again."
MSG_SUBSCRIBE_FAILED = "Could not subscribe. Please try again."
MSG_PREFERENCES_FAILED = "Could not update preferences. Please try again."
MSG_UNSUBSCRIBED = "You have been unsubscribed."
MSG_UNSUBSCRIBE_FAILED = "Failed to unsubscribe. Please try again."
MSG_UNAUTHORIZED = "Unauthorized."
MSG_ADMIN_DUPLICATE = "That email is already subscribed."
MSG_NOT_FOUND = "Subscriber not found."


class SubscriptionFailure(str, Enum):
    INVALID_EMAIL = "invalid_email"
    UNAUTHORIZED = "unauthorized"
    ALREADY_SUBSCRIBED = "already_subscribed"
    NOT_FOUND = "not_found"
    STORE_ERROR = "store_error"


@dataclass
class SubscriptionResult:
    success: bool
    message: str = ""
    failure: SubscriptionFailure | None = None
    subscriber_id: str | None = None

    @property
    def error(self) -> str | None:
        return None if self.success else self.message

    @classmethod
    def ok(cls, message: str = "", subscriber_id: str | None = None) -> "SubscriptionResult":
        return cls(success=True, message=message, subscriber_id=subscriber_id)

    @classmethod
    def failed(cls, failure: SubscriptionFailure, message: str) -> "SubscriptionResult":
        return cls(success=False, message=message, failure=failure)


def _validate(email: str) -> SubscriptionResult | None:
    if not email:
        return SubscriptionResult.failed(SubscriptionFailure.INVALID_EMAIL, MSG_EMAIL_REQUIRED)
    if not is_valid_email(email):
        return SubscriptionResult.failed(SubscriptionFailure.INVALID_EMAIL, MSG_EMAIL_INVALID)
    return None


class SubscriptionService:
    """
    Orchestrates subscriber state changes against the registry.

    Public methods return a SubscriptionResult and never raise: store
    failures are logged and mapped to a generic message.
    """

    def __init__(self, registry: SubscriberRegistry):
        self.registry = registry

    async def subscribe(
        self,
        email: str | None,
        source: str | None = None,
        segments: Iterable[str] | None = None,
    ) -> SubscriptionResult:
        """
        Subscribe an address, or merge new segments into an existing one.

        A duplicate-key conflict on insert means a concurrent request created
        the row first; that is reported as success. An existing row keeps its
        status, so an unsubscribed reader is not reactivated here.
        """
        normalized = normalize_email(email)
        invalid = _validate(normalized)
        if invalid:
            return invalid

        origin = (source or "").strip() or "unknown"

        try:
            existing = await self.registry.find_by_email(normalized)
        except Exception as e:
            logger.error("Subscriber lookup failed", email=normalized, error=str(e))
            return SubscriptionResult.failed(SubscriptionFailure.STORE_ERROR, MSG_GENERIC_FAILURE)

        if existing is None:
            try:
                created = await self.registry.create(
                    normalized, origin, merge_segments((), segments)
                )
            except DuplicateSubscriberError:
                logger.info("Concurrent subscribe resolved as duplicate", email=normalized)
                return SubscriptionResult.ok(MSG_ALREADY_SUBSCRIBED)
            except Exception as e:
                logger.error("Subscriber insert failed", email=normalized, error=str(e))
                return SubscriptionResult.failed(SubscriptionFailure.STORE_ERROR, MSG_SUBSCRIBE_FAILED)

            logger.info("Subscriber created", subscriber_id=created.id, source=origin)
            return SubscriptionResult.ok(MSG_SUBSCRIBED, subscriber_id=created.id)

        merged = merge_segments(existing.segments, segments)
        try:
            await self.registry.update_preferences(existing.id, merged)
        except Exception as e:
            logger.error("Preference update failed", subscriber_id=existing.id, error=str(e))
            return SubscriptionResult.failed(SubscriptionFailure.STORE_ERROR, MSG_PREFERENCES_FAILED)

        return SubscriptionResult.ok(MSG_SUBSCRIBED, subscriber_id=existing.id)

    async def unsubscribe_by_email(self, email: str | None) -> SubscriptionResult:
        """Unsubscribe by address. Unknown or already-unsubscribed addresses succeed silently."""
        normalized = normalize_email(email)
        if not normalized:
            return SubscriptionResult.failed(SubscriptionFailure.INVALID_EMAIL, MSG_EMAIL_REQUIRED)

        try:
            changed = await self.registry.set_status(normalized, SubscriberStatus.UNSUBSCRIBED)
        except Exception as e:
            logger.error("Unsubscribe failed", email=normalized, error=str(e))
            return SubscriptionResult.failed(SubscriptionFailure.STORE_ERROR, MSG_UNSUBSCRIBE_FAILED)

        if changed:
            logger.info("Subscriber unsubscribed", email=normalized)
        return SubscriptionResult.ok(MSG_UNSUBSCRIBED)

    async def unsubscribe_by_id(self, subscriber_id: str | None) -> SubscriptionResult:
        """Unsubscribe via the id carried in an email's unsubscribe link."""
        subscriber_id = (subscriber_id or "").strip()
        if not subscriber_id:
            return SubscriptionResult.failed(SubscriptionFailure.NOT_FOUND, "Missing subscriber ID.")
        if subscriber_id == PREVIEW_SUBSCRIBER_ID:
            return SubscriptionResult.ok(MSG_UNSUBSCRIBED)

        try:
            subscriber = await self.registry.get(subscriber_id)
            if subscriber is None:
                return SubscriptionResult.failed(SubscriptionFailure.NOT_FOUND, MSG_NOT_FOUND)
            await self.registry.set_status_by_id(subscriber_id, SubscriberStatus.UNSUBSCRIBED)
        except Exception as e:
            logger.error("Unsubscribe failed", subscriber_id=subscriber_id, error=str(e))
            return SubscriptionResult.failed(SubscriptionFailure.STORE_ERROR, MSG_UNSUBSCRIBE_FAILED)

        logger.info("Subscriber unsubscribed", subscriber_id=subscriber_id)
        return SubscriptionResult.ok(MSG_UNSUBSCRIBED, subscriber_id=subscriber_id)

    async def admin_add(self, email: str | None, auth: AuthContext) -> SubscriptionResult:
        """Operator add. Unlike subscribe, an existing address is an error."""
        if not auth.is_authorized:
            return SubscriptionResult.failed(SubscriptionFailure.UNAUTHORIZED, MSG_UNAUTHORIZED)

        normalized = normalize_email(email)
        invalid = _validate(normalized)
        if invalid:
            return invalid

        try:
            if await self.registry.find_by_email(normalized) is not None:
                return SubscriptionResult.failed(
                    SubscriptionFailure.ALREADY_SUBSCRIBED, MSG_ADMIN_DUPLICATE
                )
            created = await self.registry.create(normalized, "admin", merge_segments((), None))
        except DuplicateSubscriberError:
            return SubscriptionResult.failed(SubscriptionFailure.ALREADY_SUBSCRIBED, MSG_ADMIN_DUPLICATE)
        except Exception as e:
            logger.error("Operator add failed", email=normalized, error=str(e))
            return SubscriptionResult.failed(SubscriptionFailure.STORE_ERROR, MSG_GENERIC_FAILURE)

        logger.info("Subscriber added by operator", subscriber_id=created.id, operator=auth.operator_id)
        return SubscriptionResult.ok(subscriber_id=created.id)

    async def admin_remove(self, subscriber_id: str, auth: AuthContext) -> SubscriptionResult:
        if not auth.is_authorized:
            return SubscriptionResult.failed(SubscriptionFailure.UNAUTHORIZED, MSG_UNAUTHORIZED)

        try:
            deleted = await self.registry.delete(subscriber_id)
        except Exception as e:
            logger.error("Operator remove failed", subscriber_id=subscriber_id, error=str(e))
            return SubscriptionResult.failed(SubscriptionFailure.STORE_ERROR, MSG_GENERIC_FAILURE)

        if not deleted:
            return SubscriptionResult.failed(SubscriptionFailure.NOT_FOUND, MSG_NOT_FOUND)
        return SubscriptionResult.ok(subscriber_id=subscriber_id)
