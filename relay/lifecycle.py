"""
Room lifecycle: create, join, leave and disconnect.

Every membership change for a room happens under RoomTable.guard(room_id).
Explicit leaves and transport disconnects share one idempotent teardown, so
whichever arrives second finds the client already unjoined and does nothing.
"""
from typing import List, Optional

from logging_config import get_logger
from relay.errors import AlreadyInRoom
from relay.persistence import PersistenceMirror
from relay.registry import ConnectionRegistry
from relay.room_table import Room, RoomTable, utcnow, validate_room_id
from relay.transport import ConnectionHub

logger = get_logger(__name__)


class RoomLifecycleController:
    def __init__(self, rooms: RoomTable, registry: ConnectionRegistry,
                 transport: ConnectionHub, mirror: PersistenceMirror):
        self.rooms = rooms
        self.registry = registry
        self.transport = transport
        self.mirror = mirror

    def connect(self, identity: str) -> None:
        self.registry.register(identity)

    def _ensure_unjoined(self, identity: str) -> None:
        current = self.registry.current_room(identity)
        if current is not None:
            raise AlreadyInRoom(current)

    async def create_room(self, identity: str, room_id: str, name: Optional[str] = None) -> Room:
        """
        Open a new room with `identity` as its only member.

        Raises:
            InvalidIdentifier: room_id is not a valid identifier.
            AlreadyInRoom: the client is already a member of a room.
            RoomAlreadyExists: a live room already uses room_id.
        """
        validate_room_id(room_id)
        self._ensure_unjoined(identity)

        async with self.rooms.guard(room_id):
            room = self.rooms.create(room_id, name=name)
            self.rooms.add_member(room_id, identity)
            self.registry.set_room(identity, room_id)
            joined_at = room.members[identity]

        logger.info(f"Room {room_id} created by {identity}")
        self.mirror.room_created(room)
        self.mirror.participant_joined(room_id, identity, joined_at)
        return room

    async def join_room(self, identity: str, room_id: str) -> List[str]:
        """
        Add `identity` to a live room and tell the other members.

        Returns:
            The identities that were already in the room, in join order.

        Raises:
            InvalidIdentifier, AlreadyInRoom, RoomNotFound
        """
        validate_room_id(room_id)
        self._ensure_unjoined(identity)

        async with self.rooms.guard(room_id):
            room = self.rooms.get(room_id)
            existing_users = list(room.members)
            count = self.rooms.add_member(room_id, identity)
            self.registry.set_room(identity, room_id)
            joined_at = room.members[identity]

        logger.info(f"{identity} joined room {room_id} (total {count})")
        self.mirror.participant_joined(room_id, identity, joined_at)
        await self.transport.send_many(existing_users, "user-joined", {
            "userId": identity,
            "timestamp": joined_at.isoformat(),
        })
        return existing_users

    async def leave_room(self, identity: str) -> bool:
        """
        Remove `identity` from its room, closing the room when it empties.

        Returns:
            False when the client was not in a room, True otherwise.
        """
        room_id = self.registry.current_room(identity)
        if room_id is None:
            return False

        closed = None
        async with self.rooms.guard(room_id):
            # A concurrent teardown for this client may have won the lock
            if self.registry.current_room(identity) != room_id:
                return False
            self.registry.set_room(identity, None)
            if room_id not in self.rooms:
                logger.warning(f"{identity} referenced room {room_id} which is no longer live")
                return False
            remaining = self.rooms.remove_member(room_id, identity)
            others = list(self.rooms.get(room_id).members)
            if remaining == 0:
                closed = self.rooms.close(room_id)
        left_at = utcnow()

        logger.info(f"{identity} left room {room_id} ({remaining} remaining)")
        # Queue store writes before the only await
        self.mirror.participant_left(room_id, identity, left_at)
        if closed is not None:
            logger.info(f"Room {room_id} closed (empty)")
            self.mirror.room_closed(closed)
        await self.transport.send_many(others, "user-left", {
            "userId": identity,
            "timestamp": left_at.isoformat(),
        })
        return True

    async def disconnect(self, identity: str, reason: Optional[str] = None) -> None:
        logger.info(f"Connection {identity} closed (reason: {reason})")
        try:
            await self.leave_room(identity)
        finally:
            self.registry.deregister(identity)
