from datetime import datetime

from app.schemas import AppBaseModel


class SSEStatusResponse(AppBaseModel):
    """GET /sse/status response."""

    active_clients: int
    timestamp: datetime
