"""Public newsletter endpoints: subscribe and unsubscribe."""
from urllib.parse import urlencode

from fastapi import APIRouter, Body, Query, status
from fastapi.responses import RedirectResponse

from src.core.config import settings
from src.core.deps import Subscriptions
from src.core.exceptions import (
    AuthenticationError,
    InvalidEmailError,
    ResourceNotFound,
    StoreUnavailableError,
    SubscriberAlreadyExistsError,
)
from src.schemas.subscriber import SubscribeRequest, SubscribeResponse, UnsubscribeRequest
from src.services.preferences import parse_segments
from src.services.subscription import SubscriptionFailure, SubscriptionResult

router = APIRouter()


def raise_for_failure(result: SubscriptionResult, subject: str | None = None) -> None:
    """Translate a failed SubscriptionResult into the matching AppException."""
    if result.success:
        return
    if result.failure == SubscriptionFailure.INVALID_EMAIL:
        raise InvalidEmailError(result.message)
    if result.failure == SubscriptionFailure.UNAUTHORIZED:
        raise AuthenticationError(result.message)
    if result.failure == SubscriptionFailure.ALREADY_SUBSCRIBED:
        raise SubscriberAlreadyExistsError(result.message)
    if result.failure == SubscriptionFailure.NOT_FOUND:
        raise ResourceNotFound("Subscriber", subject)
    raise StoreUnavailableError(result.message)


def _confirmation_url(error: str | None = None) -> str:
    url = f"{settings.SITE_URL}{settings.UNSUBSCRIBED_PAGE_PATH}"
    if error:
        url = f"{url}?{urlencode({'error': error})}"
    return url


@router.post("/subscribe", response_model=SubscribeResponse)
async def subscribe(
    service: Subscriptions,
    request: SubscribeRequest | None = Body(None),
) -> SubscribeResponse:
    """
    Subscribe an email address to the newsletter.

    Subscribing an address that already exists merges the requested
    segments and still answers 200.
    """
    request = request or SubscribeRequest()
    segments = parse_segments(request.segments, request.tags)
    result = await service.subscribe(request.email, request.source, segments)
    raise_for_failure(result)
    return SubscribeResponse(success=True, message=result.message)


@router.get("/newsletter/unsubscribe", response_class=RedirectResponse)
async def unsubscribe_link(
    service: Subscriptions,
    email: str | None = Query(None),
    subscriber_id: str | None = Query(None, alias="id"),
) -> RedirectResponse:
    """Unsubscribe from an email link and redirect to the confirmation page."""
    if subscriber_id:
        result = await service.unsubscribe_by_id(subscriber_id)
    elif email:
        result = await service.unsubscribe_by_email(email)
    else:
        return RedirectResponse(_confirmation_url("missing"), status_code=status.HTTP_302_FOUND)

    error = None
    if result.failure == SubscriptionFailure.NOT_FOUND:
        error = "not_found"
    elif result.failure is not None:
        error = "failed"
    return RedirectResponse(_confirmation_url(error), status_code=status.HTTP_302_FOUND)


@router.post("/newsletter/unsubscribe", response_model=SubscribeResponse)
async def unsubscribe(
    request: UnsubscribeRequest,
    service: Subscriptions,
) -> SubscribeResponse:
    """Unsubscribe by the subscriber id carried in the email."""
    result = await service.unsubscribe_by_id(request.id)
    raise_for_failure(result, subject=request.id)
    return SubscribeResponse(success=True, message=result.message)
