"""
Relay error taxonomy.

Every validation or state-machine failure the relay reports to a client is a
RelayError carrying a machine-readable code and a human-readable message.
"""

from enum import Enum
from typing import Any, Dict, Optional


class RelayErrorCode(str, Enum):
    """Machine-readable error codes sent to clients."""

    INVALID_IDENTIFIER = "invalid_identifier"
    ALREADY_IN_ROOM = "already_in_room"
    ROOM_ALREADY_EXISTS = "room_already_exists"
    ROOM_NOT_FOUND = "room_not_found"
    INVALID_PAYLOAD = "invalid_payload"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    PERSISTENCE_UNAVAILABLE = "persistence_unavailable"
    INTERNAL_ERROR = "internal_error"


class RelayError(Exception):
    """Base exception for relay errors."""

    code = RelayErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        data = {"code": self.code.value, "message": self.message}
        if self.details:
            data["details"] = self.details
        return data


class InvalidIdentifier(RelayError):
    code = RelayErrorCode.INVALID_IDENTIFIER


class AlreadyInRoom(RelayError):
    code = RelayErrorCode.ALREADY_IN_ROOM

    def __init__(self, room_id: str):
        super().__init__(f"Already a member of room {room_id}", {"room_id": room_id})


class RoomAlreadyExists(RelayError):
    code = RelayErrorCode.ROOM_ALREADY_EXISTS

    def __init__(self, room_id: str):
        super().__init__(f"Room {room_id} already exists", {"room_id": room_id})


class RoomNotFound(RelayError):
    code = RelayErrorCode.ROOM_NOT_FOUND

    def __init__(self, room_id: str):
        super().__init__(f"Room {room_id} does not exist", {"room_id": room_id})


class InvalidPayload(RelayError):
    code = RelayErrorCode.INVALID_PAYLOAD


class PayloadTooLarge(RelayError):
    code = RelayErrorCode.PAYLOAD_TOO_LARGE

    def __init__(self, kind: str, size: int, limit: int):
        super().__init__(
            f"{kind} payload is too large ({size} > {limit} bytes)",
            {"size": size, "limit": limit},
        )


class PersistenceUnavailable(RelayError):
    """The external store could not record an event. Logged, never sent to clients."""

    code = RelayErrorCode.PERSISTENCE_UNAVAILABLE
