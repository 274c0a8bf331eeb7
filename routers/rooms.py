from fastapi import APIRouter, Query, Request
from schemas.rooms import ActiveRoom, ActiveRoomsResponse
from relay.errors import PersistenceUnavailable
from logging_config import get_logger

logger = get_logger(__name__)

rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@rooms_router.get("", response_model=ActiveRoomsResponse)
async def list_active_rooms(
    request: Request,
    cross_check: bool = Query(False, description="Only list rooms the persistent store also reports as open"),
):
    """
    List live rooms, newest first.

    Returns for each room:
    - id: Room identifier
    - name: Display name given at creation, if any
    - userCount: Current number of members
    - createdAt: Room creation timestamp
    """
    state = request.app.state
    rooms = state.rooms.snapshot()

    if cross_check:
        try:
            persisted = await state.mirror.active_room_ids()
            unmatched = [room.id for room in rooms if room.id not in persisted]
            if unmatched:
                logger.warning(f"Rooms live in memory but not open in the store: {unmatched}")
            rooms = [room for room in rooms if room.id in persisted]
        except PersistenceUnavailable as e:
            logger.error(f"Room list cross-check skipped: {e.message}")

    logger.debug(f"Listing {len(rooms)} active rooms")
    return ActiveRoomsResponse(rooms=[
        ActiveRoom(id=room.id, name=room.name, userCount=len(room.members), createdAt=room.created_at)
        for room in rooms
    ])
