"""SSE endpoints: per-user stream of list events and connection status."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sse_starlette import EventSourceResponse, ServerSentEvent
from starlette.requests import Request

from app.dependencies import get_current_user_id, get_realtime_service
from app.rate_limit import limiter
from app.schemas.sse import SSEStatusResponse
from app.services.realtime import RealtimeService

router = APIRouter(prefix="/sse", tags=["sse"])

RECEIVE_TIMEOUT_SECONDS = 1.0

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


async def _user_event_stream(request: Request, realtime: RealtimeService, user_id: str):
    """Per-connection SSE generator; registers on first iteration, unregisters on any exit."""
    connection = None
    try:
        connection = await realtime.subscribe(user_id)
        while not connection.sink.closed:
            if await request.is_disconnected():
                break
            message = await connection.sink.receive(timeout=RECEIVE_TIMEOUT_SECONDS)
            if message is None:
                continue
            yield ServerSentEvent(data=message)
    finally:
        if connection is not None:
            realtime.unsubscribe(connection.id)


@router.get("/user")
@limiter.limit("30/minute")
async def subscribe_user_events(
    request: Request,
    user_id: str = Depends(get_current_user_id),
    realtime: RealtimeService = Depends(get_realtime_service),
):
    """Stream every event for lists the user belongs to.

    Connect with EventSource API (token as query parameter):
      const es = new EventSource(`/sse/user?token=${token}`)
      es.onmessage = (e) => { const event = JSON.parse(e.data) ... }
    """
    return EventSourceResponse(
        _user_event_stream(request, realtime, user_id),
        headers=STREAM_HEADERS,
        ping=15,
    )


@router.get("/status", response_model=SSEStatusResponse)
@limiter.limit("60/minute")
async def sse_status(
    request: Request,
    _user_id: str = Depends(get_current_user_id),
    realtime: RealtimeService = Depends(get_realtime_service),
):
    return SSEStatusResponse(
        active_clients=realtime.active_connection_count(),
        timestamp=datetime.now(timezone.utc),
    )
