"""Operator endpoints for managing subscribers."""
from fastapi import APIRouter, Query, Response, status

from src.api.v1.endpoints.newsletter import raise_for_failure
from src.core.deps import Auth, Operator, Registry, Subscriptions
from src.core.exceptions import StoreUnavailableError
from src.models.subscriber import Subscriber
from src.schemas.subscriber import (
    AdminAddSubscriberRequest,
    SubscriberCountResponse,
    SubscriberListResponse,
    SubscriberResponse,
)

router = APIRouter()


def _to_response(subscriber: Subscriber) -> SubscriberResponse:
    return SubscriberResponse(
        id=subscriber.id,
        email=subscriber.email,
        status=subscriber.status,
        source=subscriber.source,
        segments=sorted(subscriber.segments),
        created_at=subscriber.created_at,
    )


@router.get("", response_model=SubscriberListResponse)
async def list_subscribers(
    operator: Operator,
    registry: Registry,
    q: str | None = Query(None, max_length=255, description="Filter by email substring"),
    limit: int | None = Query(None, ge=1, le=10000),
) -> SubscriberListResponse:
    """List subscribers, newest first."""
    subscribers = await registry.search(q, limit=limit)
    return SubscriberListResponse(
        subscribers=[_to_response(s) for s in subscribers],
        total=len(subscribers),
    )


@router.get("/count", response_model=SubscriberCountResponse)
async def count_subscribers(operator: Operator, registry: Registry) -> SubscriberCountResponse:
    """Number of active subscribers."""
    return SubscriberCountResponse(count=await registry.count_active())


@router.post("", response_model=SubscriberResponse, status_code=status.HTTP_201_CREATED)
async def add_subscriber(
    request: AdminAddSubscriberRequest,
    auth: Auth,
    service: Subscriptions,
) -> SubscriberResponse:
    """Add a subscriber by hand. Fails with 409 if the address is already present."""
    result = await service.admin_add(request.email, auth)
    raise_for_failure(result)

    subscriber = await service.registry.get(result.subscriber_id)
    if subscriber is None:
        raise StoreUnavailableError()
    return _to_response(subscriber)


@router.delete("/{subscriber_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_subscriber(
    subscriber_id: str,
    auth: Auth,
    service: Subscriptions,
) -> Response:
    """Delete a subscriber row outright."""
    result = await service.admin_remove(subscriber_id, auth)
    raise_for_failure(result, subject=subscriber_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
