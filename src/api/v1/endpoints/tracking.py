"""Open-tracking beacon."""
import base64

from fastapi import APIRouter, Query
from fastapi.responses import Response

from src.core.deps import Recorder

router = APIRouter()

# 1x1 transparent GIF
TRACKING_PIXEL = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")


@router.get("/open", include_in_schema=False)
async def track_open(
    recorder: Recorder,
    newsletter_id: str | None = Query(None, alias="id"),
    recipient_id: str | None = Query(None, alias="sub"),
) -> Response:
    """
    Record an email open and return the pixel.

    Always answers 200 with the image; write failures are logged by the
    recorder and never reach the mail client.
    """
    if newsletter_id:
        await recorder.record_open(newsletter_id, recipient_id)

    return Response(
        content=TRACKING_PIXEL,
        media_type="image/gif",
        headers={"Cache-Control": "no-store"},
    )
