from typing import Dict, Optional

from logging_config import get_logger

logger = get_logger(__name__)


class ConnectionRegistry:
    """
    Maps each live connection identity to the room it currently belongs to.

    Only the lifecycle controller writes room assignments. Unknown
    identities are tolerated everywhere because disconnects race with other
    cleanup.
    """

    def __init__(self):
        # Format: {connection_id: room_id or None}
        self._rooms: Dict[str, Optional[str]] = {}

    def register(self, identity: str) -> None:
        if identity in self._rooms:
            return
        self._rooms[identity] = None
        logger.debug(f"Registered connection {identity} ({len(self._rooms)} live)")

    def current_room(self, identity: str) -> Optional[str]:
        return self._rooms.get(identity)

    def set_room(self, identity: str, room_id: Optional[str]) -> None:
        if identity not in self._rooms:
            logger.debug(f"Ignoring room assignment for unknown connection {identity}")
            return
        self._rooms[identity] = room_id

    def deregister(self, identity: str) -> None:
        if self._rooms.pop(identity, None) is not None:
            # The controller clears membership first, so this is a bug upstream
            logger.warning(f"Connection {identity} deregistered while still in a room")
        logger.debug(f"Deregistered connection {identity} ({len(self._rooms)} live)")

    def is_connected(self, identity: str) -> bool:
        return identity in self._rooms

    def __contains__(self, identity: str) -> bool:
        return identity in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
