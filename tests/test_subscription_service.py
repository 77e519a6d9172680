"""Tests for the subscription service and subscriber registry."""
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.core.security import ANONYMOUS, AuthContext
from src.models.subscriber import Subscriber, SubscriberStatus
from src.services.registry import DuplicateSubscriberError, SubscriberRegistry
from src.services.subscription import (
    MSG_ALREADY_SUBSCRIBED,
    MSG_EMAIL_INVALID,
    MSG_EMAIL_REQUIRED,
    MSG_SUBSCRIBED,
    PREVIEW_SUBSCRIBER_ID,
    SubscriptionFailure,
    SubscriptionService,
)
from helpers import make_subscriber

OPERATOR = AuthContext(is_authorized=True, operator_id="operator-1")


async def _all_subscribers(db_session: AsyncSession) -> list[Subscriber]:
    result = await db_session.execute(select(Subscriber))
    return list(result.scalars().all())


class TestSubscribe:
    """Test the public subscribe flow."""

    @pytest.mark.asyncio
    async def test_new_subscriber(self, db_session: AsyncSession):
        """A new address is stored active, normalised, with the default segment."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.subscribe("  New@Example.COM ", source="footer")

        assert result.success
        assert result.message == MSG_SUBSCRIBED
        rows = await _all_subscribers(db_session)
        assert len(rows) == 1
        assert rows[0].email == "new@example.com"
        assert rows[0].status == SubscriberStatus.ACTIVE
        assert rows[0].source == "footer"
        assert rows[0].segments == {"newsletter"}

    @pytest.mark.asyncio
    async def test_source_defaults_to_unknown(self, db_session: AsyncSession):
        """A blank source is recorded as unknown."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        await service.subscribe("a@example.com", source="  ")

        rows = await _all_subscribers(db_session)
        assert rows[0].source == "unknown"

    @pytest.mark.asyncio
    async def test_requested_segments_stored(self, db_session: AsyncSession):
        """Requested segments replace the default on first subscribe."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        await service.subscribe("a@example.com", segments=["ai", "data"])

        rows = await _all_subscribers(db_session)
        assert rows[0].segments == {"ai", "data"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "email,message",
        [(None, MSG_EMAIL_REQUIRED), ("", MSG_EMAIL_REQUIRED), ("   ", MSG_EMAIL_REQUIRED), ("bad", MSG_EMAIL_INVALID)],
    )
    async def test_invalid_email_never_touches_store(self, email, message):
        """Validation failures return before any registry call."""
        registry = AsyncMock(spec=SubscriberRegistry)
        service = SubscriptionService(registry)

        result = await service.subscribe(email)

        assert not result.success
        assert result.failure == SubscriptionFailure.INVALID_EMAIL
        assert result.error == message
        registry.find_by_email.assert_not_called()
        registry.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_existing_subscriber_merges_segments(self, db_session: AsyncSession):
        """Subscribing again adds segments without removing old ones."""
        existing = await make_subscriber(db_session, "a@example.com", segments=["ai"])
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.subscribe("a@example.com", segments=["data"])

        assert result.success
        await db_session.refresh(existing)
        assert existing.segments == {"ai", "data"}
        assert len(await _all_subscribers(db_session)) == 1

    @pytest.mark.asyncio
    async def test_resubscribe_is_idempotent(self, db_session: AsyncSession):
        """The same request twice leaves one row with the same segments."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        first = await service.subscribe("a@example.com", segments=["ai"])
        second = await service.subscribe("a@example.com", segments=["ai"])

        assert first.success and second.success
        rows = await _all_subscribers(db_session)
        assert len(rows) == 1
        assert rows[0].segments == {"ai"}

    @pytest.mark.asyncio
    async def test_resubscribe_does_not_reactivate(self, db_session: AsyncSession):
        """An unsubscribed reader stays unsubscribed after subscribing again."""
        existing = await make_subscriber(
            db_session, "gone@example.com", status=SubscriberStatus.UNSUBSCRIBED
        )
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.subscribe("gone@example.com", segments=["ai"])

        assert result.success
        await db_session.refresh(existing)
        assert existing.status == SubscriberStatus.UNSUBSCRIBED
        assert "ai" in existing.segments

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_is_success(self, db_session: AsyncSession):
        """Losing the insert race reports the already-subscribed message."""
        await make_subscriber(db_session, "race@example.com")
        registry = SubscriberRegistry(db_session)
        service = SubscriptionService(registry)

        # Simulate the other request inserting between lookup and create
        with patch.object(registry, "find_by_email", AsyncMock(return_value=None)):
            result = await service.subscribe("race@example.com")

        assert result.success
        assert result.message == MSG_ALREADY_SUBSCRIBED
        assert len(await _all_subscribers(db_session)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_subscribe_from_two_sessions(self, async_engine):
        """Two sessions racing on one address hit the unique index and both succeed."""
        session_factory = async_sessionmaker(
            async_engine, class_=AsyncSession, expire_on_commit=False
        )

        async with session_factory() as first_session, session_factory() as second_session:
            first_registry = SubscriberRegistry(first_session)
            second_service = SubscriptionService(SubscriberRegistry(second_session))
            real_lookup = first_registry.find_by_email
            winner = []

            # The other request commits between this one's lookup and insert
            async def lookup_then_lose_race(email: str):
                found = await real_lookup(email)
                winner.append(await second_service.subscribe(email, segments=["ai"]))
                return found

            first_registry.find_by_email = lookup_then_lose_race

            result = await SubscriptionService(first_registry).subscribe("race@example.com")

            rows = await _all_subscribers(second_session)

        assert winner[0].success
        assert winner[0].message == MSG_SUBSCRIBED
        assert result.success
        assert result.message == MSG_ALREADY_SUBSCRIBED
        assert len(rows) == 1
        assert rows[0].segments == {"ai"}

    @pytest.mark.asyncio
    async def test_store_failure_is_generic(self):
        """Store errors map to a generic message without internal detail."""
        registry = AsyncMock(spec=SubscriberRegistry)
        registry.find_by_email.side_effect = RuntimeError("connection refused on 10.0.0.5")
        service = SubscriptionService(registry)

        result = await service.subscribe("a@example.com")

        assert not result.success
        assert result.failure == SubscriptionFailure.STORE_ERROR
        assert "10.0.0.5" not in result.message


class TestRegistry:
    """Test registry-level constraints."""

    @pytest.mark.asyncio
    async def test_create_duplicate_raises(self, db_session: AsyncSession):
        """The unique email constraint surfaces as DuplicateSubscriberError."""
        registry = SubscriberRegistry(db_session)
        await registry.create("dup@example.com", "web", {"newsletter"})

        with pytest.raises(DuplicateSubscriberError):
            await registry.create("dup@example.com", "web", {"newsletter"})

    @pytest.mark.asyncio
    async def test_unsubscribed_cannot_return_to_active(self, db_session: AsyncSession):
        """No transition leads back to active."""
        await make_subscriber(db_session, "gone@example.com", status=SubscriberStatus.UNSUBSCRIBED)
        registry = SubscriberRegistry(db_session)

        changed = await registry.set_status("gone@example.com", SubscriberStatus.ACTIVE)

        assert changed == 0

    @pytest.mark.asyncio
    async def test_list_active_in_creation_order(self, db_session: AsyncSession):
        """Active subscribers come back oldest first; unsubscribed are skipped."""
        await make_subscriber(db_session, "second@example.com", offset=2)
        await make_subscriber(db_session, "first@example.com", offset=1)
        await make_subscriber(db_session, "gone@example.com", offset=0, status=SubscriberStatus.UNSUBSCRIBED)
        registry = SubscriberRegistry(db_session)

        active = await registry.list_active()

        assert [s.email for s in active] == ["first@example.com", "second@example.com"]
        assert await registry.count_active() == 2

    @pytest.mark.asyncio
    async def test_search_filters_by_substring(self, db_session: AsyncSession):
        """Search matches part of the address, newest first."""
        await make_subscriber(db_session, "alice@example.com", offset=1)
        await make_subscriber(db_session, "bob@example.com", offset=2)
        await make_subscriber(db_session, "alicia@other.org", offset=3)
        registry = SubscriberRegistry(db_session)

        found = await registry.search("ALIC")

        assert [s.email for s in found] == ["alicia@other.org", "alice@example.com"]


class TestUnsubscribe:
    """Test unsubscribe by email and by id."""

    @pytest.mark.asyncio
    async def test_unsubscribe_by_email(self, db_session: AsyncSession, test_subscriber: Subscriber):
        """An active subscriber becomes unsubscribed."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.unsubscribe_by_email("Reader@Example.com")

        assert result.success
        await db_session.refresh(test_subscriber)
        assert test_subscriber.status == SubscriberStatus.UNSUBSCRIBED

    @pytest.mark.asyncio
    async def test_unsubscribe_twice_is_success(self, db_session: AsyncSession, test_subscriber: Subscriber):
        """A second unsubscribe succeeds and changes nothing."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        await service.unsubscribe_by_email(test_subscriber.email)
        result = await service.unsubscribe_by_email(test_subscriber.email)

        assert result.success
        await db_session.refresh(test_subscriber)
        assert test_subscriber.status == SubscriberStatus.UNSUBSCRIBED

    @pytest.mark.asyncio
    async def test_unsubscribe_unknown_email_is_success(self, db_session: AsyncSession):
        """Unknown addresses do not reveal whether they exist."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.unsubscribe_by_email("nobody@example.com")

        assert result.success

    @pytest.mark.asyncio
    async def test_unsubscribe_missing_email(self, db_session: AsyncSession):
        """An empty address is an invalid request."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.unsubscribe_by_email("  ")

        assert result.failure == SubscriptionFailure.INVALID_EMAIL

    @pytest.mark.asyncio
    async def test_unsubscribe_by_id(self, db_session: AsyncSession, test_subscriber: Subscriber):
        """The id from an unsubscribe link works."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.unsubscribe_by_id(test_subscriber.id)

        assert result.success
        await db_session.refresh(test_subscriber)
        assert test_subscriber.status == SubscriberStatus.UNSUBSCRIBED

    @pytest.mark.asyncio
    async def test_unsubscribe_by_unknown_id(self, db_session: AsyncSession):
        """An id with no row is not found."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.unsubscribe_by_id("00000000-0000-0000-0000-000000000000")

        assert result.failure == SubscriptionFailure.NOT_FOUND

    @pytest.mark.asyncio
    async def test_preview_id_is_noop(self):
        """Links in test sends succeed without touching the store."""
        registry = AsyncMock(spec=SubscriberRegistry)
        service = SubscriptionService(registry)

        result = await service.unsubscribe_by_id(PREVIEW_SUBSCRIBER_ID)

        assert result.success
        registry.get.assert_not_called()


class TestAdminOperations:
    """Test operator add and remove."""

    @pytest.mark.asyncio
    async def test_admin_add_requires_authorization(self, db_session: AsyncSession):
        """Anonymous callers are rejected with no state change."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.admin_add("a@example.com", ANONYMOUS)

        assert result.failure == SubscriptionFailure.UNAUTHORIZED
        assert await _all_subscribers(db_session) == []

    @pytest.mark.asyncio
    async def test_admin_add_creates_with_admin_source(self, db_session: AsyncSession):
        """Operator-added subscribers are active with source admin."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.admin_add("Added@Example.com", OPERATOR)

        assert result.success
        rows = await _all_subscribers(db_session)
        assert rows[0].email == "added@example.com"
        assert rows[0].source == "admin"
        assert rows[0].is_active

    @pytest.mark.asyncio
    async def test_admin_add_existing_is_error(self, db_session: AsyncSession, test_subscriber: Subscriber):
        """Unlike subscribe, an existing address is reported to the operator."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.admin_add(test_subscriber.email, OPERATOR)

        assert not result.success
        assert result.failure == SubscriptionFailure.ALREADY_SUBSCRIBED

    @pytest.mark.asyncio
    async def test_admin_remove_requires_authorization(self, db_session: AsyncSession, test_subscriber: Subscriber):
        """Anonymous removal leaves the row in place."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.admin_remove(test_subscriber.id, ANONYMOUS)

        assert result.failure == SubscriptionFailure.UNAUTHORIZED
        assert len(await _all_subscribers(db_session)) == 1

    @pytest.mark.asyncio
    async def test_admin_remove_deletes_row(self, db_session: AsyncSession, test_subscriber: Subscriber):
        """Removal deletes the subscriber outright."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.admin_remove(test_subscriber.id, OPERATOR)

        assert result.success
        assert await _all_subscribers(db_session) == []

    @pytest.mark.asyncio
    async def test_admin_remove_unknown(self, db_session: AsyncSession):
        """Removing an unknown id is not found."""
        service = SubscriptionService(SubscriberRegistry(db_session))

        result = await service.admin_remove("missing", OPERATOR)

        assert result.failure == SubscriptionFailure.NOT_FOUND
