import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request

from schemas.rooms import HealthResponse

health_router = APIRouter(tags=["health"])


@health_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    state = request.app.state
    return HealthResponse(
        status="ok",
        activeConnections=len(state.hub),
        activeRooms=len(state.rooms),
        uptime=time.monotonic() - state.started_at,
        timestamp=datetime.now(timezone.utc),
    )
