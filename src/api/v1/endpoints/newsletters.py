"""Operator endpoints for broadcasts, audiences and engagement."""
from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from src.core.deps import Broadcasts, Operator, Registry, Stats
from src.core.exceptions import ResourceNotFound
from src.schemas.newsletter import (
    AudienceCountResponse,
    AudienceMetadataResponse,
    AudienceTargetSchema,
    BroadcastQueuedResponse,
    BroadcastRequest,
    BroadcastResponse,
    NewsletterEngagementResponse,
    SendTestRequest,
    SendTestResponse,
    TopNewslettersResponse,
)
from src.services.audience import AudienceResolver
from src.workers.tasks.broadcast import send_broadcast

router = APIRouter()


@router.get("/audience", response_model=AudienceMetadataResponse)
async def audience_metadata(operator: Operator, registry: Registry) -> AudienceMetadataResponse:
    """Sources and tags present among active subscribers, for building filters."""
    metadata = await AudienceResolver(registry).metadata()
    return AudienceMetadataResponse(
        sources=metadata.sources,
        tags=metadata.tags,
        total_active=metadata.total_active,
    )


@router.post("/audience/count", response_model=AudienceCountResponse)
async def audience_count(
    target: AudienceTargetSchema,
    operator: Operator,
    registry: Registry,
) -> AudienceCountResponse:
    count = await AudienceResolver(registry).count(target.to_target())
    return AudienceCountResponse(count=count)


@router.get("/engagement/top", response_model=TopNewslettersResponse)
async def top_newsletters(
    operator: Operator,
    stats: Stats,
    limit: int = Query(20, ge=1, le=100),
) -> TopNewslettersResponse:
    """Most opened newsletters first."""
    rows = await stats.top_newsletters(limit=limit)
    return TopNewslettersResponse(
        newsletters=[NewsletterEngagementResponse.model_validate(row) for row in rows]
    )


@router.get("/{newsletter_id}/engagement", response_model=NewsletterEngagementResponse)
async def newsletter_engagement(
    newsletter_id: str,
    operator: Operator,
    stats: Stats,
) -> NewsletterEngagementResponse:
    engagement = await stats.for_newsletter(newsletter_id)
    return NewsletterEngagementResponse.model_validate(engagement)


@router.post(
    "/{slug_or_id}/broadcast",
    response_model=BroadcastResponse,
    responses={202: {"model": BroadcastQueuedResponse}},
)
async def broadcast_newsletter(
    slug_or_id: str,
    operator: Operator,
    broadcasts: Broadcasts,
    request: BroadcastRequest | None = None,
    background: bool = Query(False, description="Queue the send on a worker instead of waiting"),
):
    """
    Send a newsletter to its audience.

    By default the request stays open until every recipient has been
    processed. With ``background=true`` the send is handed to a worker and
    the task id is returned immediately.
    """
    target = request.target if request else None

    if background:
        if await broadcasts.get_newsletter(slug_or_id) is None:
            raise ResourceNotFound("Newsletter", slug_or_id)
        task = send_broadcast.delay(
            slug_or_id,
            target.model_dump(mode="json") if target else None,
            operator.operator_id,
        )
        queued = BroadcastQueuedResponse(task_id=task.id)
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=queued.model_dump())

    report = await broadcasts.broadcast(
        slug_or_id,
        operator,
        target.to_target() if target else None,
    )
    return BroadcastResponse(**report.as_dict())


@router.post("/{slug_or_id}/test", response_model=SendTestResponse)
async def send_test_email(
    slug_or_id: str,
    request: SendTestRequest,
    operator: Operator,
    broadcasts: Broadcasts,
) -> SendTestResponse:
    """Send a single [TEST] copy to one address."""
    result = await broadcasts.send_test(slug_or_id, request.email, operator)
    return SendTestResponse(success=True, message_id=result.message_id)
