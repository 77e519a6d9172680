"""Dependency injection utilities."""
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.core.exceptions import AuthenticationError
from src.core.security import AuthContext, auth_context_from_token
from src.integrations.email import BaseEmailTransport, get_email_transport
from src.services.broadcast import BroadcastService
from src.services.dispatcher import RateLimitedDispatcher
from src.services.engagement import EngagementRecorder, EngagementStats
from src.services.registry import SubscriberRegistry
from src.services.subscription import SubscriptionService

security = HTTPBearer(auto_error=False)


async def get_auth_context(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> AuthContext:
    """Resolve the caller. Missing or bad credentials give an anonymous context."""
    return auth_context_from_token(credentials.credentials if credentials else None)


async def require_operator(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> AuthContext:
    """Reject callers that are not authorized operators."""
    if not auth.is_authorized:
        raise AuthenticationError()
    return auth


def get_registry(db: Annotated[AsyncSession, Depends(get_db)]) -> SubscriberRegistry:
    return SubscriberRegistry(db)


def get_subscription_service(
    registry: Annotated[SubscriberRegistry, Depends(get_registry)],
) -> SubscriptionService:
    return SubscriptionService(registry)


def get_engagement_recorder(db: Annotated[AsyncSession, Depends(get_db)]) -> EngagementRecorder:
    return EngagementRecorder(db)


def get_engagement_stats(db: Annotated[AsyncSession, Depends(get_db)]) -> EngagementStats:
    return EngagementStats(db)


def get_transport() -> BaseEmailTransport:
    return get_email_transport()


def get_dispatcher(
    transport: Annotated[BaseEmailTransport, Depends(get_transport)],
) -> RateLimitedDispatcher:
    return RateLimitedDispatcher(transport)


def get_broadcast_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    dispatcher: Annotated[RateLimitedDispatcher, Depends(get_dispatcher)],
) -> BroadcastService:
    return BroadcastService(db, dispatcher)


# Type aliases for cleaner code
DbSession = Annotated[AsyncSession, Depends(get_db)]
Auth = Annotated[AuthContext, Depends(get_auth_context)]
Operator = Annotated[AuthContext, Depends(require_operator)]
Registry = Annotated[SubscriberRegistry, Depends(get_registry)]
Subscriptions = Annotated[SubscriptionService, Depends(get_subscription_service)]
Recorder = Annotated[EngagementRecorder, Depends(get_engagement_recorder)]
Stats = Annotated[EngagementStats, Depends(get_engagement_stats)]
Broadcasts = Annotated[BroadcastService, Depends(get_broadcast_service)]
