"""Background broadcast tasks."""
import asyncio

import structlog

from src.core.database import get_celery_async_session
from src.core.security import AuthContext
from src.integrations.email import get_email_transport
from src.schemas.newsletter import AudienceTargetSchema
from src.services.broadcast import BroadcastService
from src.services.dispatcher import RateLimitedDispatcher
from src.workers.celery_app import celery_app

logger = structlog.get_logger()

# A throttled send to a large list outlives the default task limit
BROADCAST_TIME_LIMIT = 6 * 60 * 60


def run_async(coro):
    """Helper to run async code in sync Celery tasks."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


async def _send_broadcast_async(
    slug_or_id: str,
    target: dict | None,
    operator_id: str | None,
) -> dict:
    audience = AudienceTargetSchema(**target).to_target() if target else None
    dispatcher = RateLimitedDispatcher(get_email_transport())

    async with get_celery_async_session()() as session:
        service = BroadcastService(session, dispatcher)
        report = await service.broadcast(
            slug_or_id,
            AuthContext(is_authorized=True, operator_id=operator_id),
            audience,
        )
    return report.as_dict()


@celery_app.task(time_limit=BROADCAST_TIME_LIMIT, acks_late=False)
def send_broadcast(slug_or_id: str, target: dict | None = None, operator_id: str | None = None):
    """
    Send a newsletter to its audience outside the request cycle.

    Only enqueued by an operator-authenticated endpoint, so the task runs
    with an authorized context carrying that operator's id. Not acked late:
    a redelivered broadcast would mail every recipient twice.
    """
    logger.info("Sending broadcast", newsletter=slug_or_id, operator=operator_id)
    result = run_async(_send_broadcast_async(slug_or_id, target, operator_id))
    logger.info("Broadcast finished", newsletter=slug_or_id, **result)
    return result
