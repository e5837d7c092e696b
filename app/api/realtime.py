"""Server-Sent Events stream for the dashboard."""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from app.core.dependencies import get_notifier
from app.services.realtime.notifier import RealtimeNotifier

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/api/realtime/stream")
async def stream_events(request: Request, notifier: RealtimeNotifier = Depends(get_notifier)):
    """
    Push newly persisted calls/messages to this dashboard session.

    Frames are ``event: <type>`` / ``data: {"seq", "key", "payload"}``.
    Reconnect and refetch if the stream ends.
    """
    subscription = notifier.subscribe()
    logger.info(
        f"[REALTIME] Dashboard connected - Client: {request.client.host if request.client else 'unknown'}"
    )

    async def event_stream():
        try:
            yield ": connected\n\n"
            async for event in subscription:
                yield event.to_sse()
        finally:
            subscription.unsubscribe()
            logger.info("[REALTIME] Dashboard disconnected")

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
