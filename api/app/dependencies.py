from typing import Optional

from fastapi import HTTPException, Query, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.requests import Request

from app.database import settings
from app.services.auth import TokenError, verify_token
from app.services.realtime import RealtimeService

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    # EventSource cannot send headers, so the SSE route also accepts ?token=
    token: Optional[str] = Query(None),
) -> str:
    raw_token = credentials.credentials if credentials else token
    if not raw_token:
        raise HTTPException(
            status_code=401,
            detail="Not authorized, no token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return verify_token(settings, raw_token)
    except TokenError:
        raise HTTPException(
            status_code=401,
            detail="Not authorized, token failed",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_realtime_service(request: Request) -> RealtimeService:
    return request.app.state.realtime
