from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_session
from app.dependencies import get_realtime_service
from app.schemas.health import HealthResponse
from app.services.realtime import RealtimeService

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    session: AsyncSession = Depends(get_session),
    realtime: RealtimeService = Depends(get_realtime_service),
):
    connections = realtime.active_connection_count()
    try:
        await session.execute(text("SELECT 1"))
        return HealthResponse(status="healthy", db="connected", connections=connections)
    except Exception:
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "db": "disconnected",
                "connections": connections,
            },
        )
