import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional

from pydantic import BaseModel, Field

from constants import MAX_ROOM_ID_LENGTH
from logging_config import get_logger
from relay.errors import InvalidIdentifier, RoomAlreadyExists, RoomNotFound

logger = get_logger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Room(BaseModel):
    id: str
    name: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    closed_at: Optional[datetime] = None
    # Format: {connection_id: joined_at}, in join order
    members: Dict[str, datetime] = Field(default_factory=dict)


def validate_room_id(room_id) -> str:
    """Raise InvalidIdentifier unless room_id is a usable room identifier."""
    if not isinstance(room_id, str) or not room_id.strip():
        raise InvalidIdentifier("Invalid room id")
    if len(room_id) > MAX_ROOM_ID_LENGTH:
        raise InvalidIdentifier(f"Room id is too long (max {MAX_ROOM_ID_LENGTH} characters)")
    if not room_id.isprintable():
        raise InvalidIdentifier("Room id contains non-printable characters")
    return room_id


class _RoomLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class RoomTable:
    """
    Live rooms keyed by identifier.

    A room stays in the table only while it has members. Callers that mutate
    membership hold guard(room_id) so that the transition to zero members is
    observed by exactly one caller.
    """

    def __init__(self):
        # Format: {room_id: Room}
        self._rooms: Dict[str, Room] = {}
        # Format: {room_id: _RoomLock}, present only while someone holds or awaits it
        self._locks: Dict[str, _RoomLock] = {}

    @asynccontextmanager
    async def guard(self, room_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(room_id)
        if entry is None:
            entry = self._locks[room_id] = _RoomLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[room_id]

    def create(self, room_id: str, name: Optional[str] = None) -> Room:
        validate_room_id(room_id)
        if room_id in self._rooms:
            raise RoomAlreadyExists(room_id)
        room = Room(id=room_id, name=name)
        self._rooms[room_id] = room
        logger.debug(f"Room {room_id} created at {room.created_at.isoformat()}")
        return room

    def get(self, room_id: str) -> Room:
        validate_room_id(room_id)
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFound(room_id)
        return room

    def add_member(self, room_id: str, identity: str) -> int:
        room = self.get(room_id)
        room.members.setdefault(identity, utcnow())
        return len(room.members)

    def remove_member(self, room_id: str, identity: str) -> int:
        room = self.get(room_id)
        room.members.pop(identity, None)
        return len(room.members)

    def close(self, room_id: str) -> Room:
        room = self.get(room_id)
        if room.members:
            logger.warning(f"Closing room {room_id} with {len(room.members)} members left")
        del self._rooms[room_id]
        room.closed_at = utcnow()
        logger.debug(f"Room {room_id} closed at {room.closed_at.isoformat()}")
        return room

    def snapshot(self) -> List[Room]:
        """Copies of every live room, newest first."""
        # Insertion order is creation order
        return [room.model_copy(deep=True) for room in reversed(self._rooms.values())]

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
