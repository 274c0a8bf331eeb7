import json
from typing import Any, Dict

from pydantic import ValidationError

from constants import MAX_PAYLOAD_BYTES
from logging_config import get_logger
from relay.errors import InvalidPayload, PayloadTooLarge
from relay.registry import ConnectionRegistry
from relay.transport import ConnectionHub
from schemas.signaling import AnswerMessage, IceCandidateMessage, OfferMessage

logger = get_logger(__name__)

# Format: {event: (wire model, payload field)}
SIGNALING_KINDS: Dict[str, tuple] = {
    "offer": (OfferMessage, "offer"),
    "answer": (AnswerMessage, "answer"),
    "ice-candidate": (IceCandidateMessage, "candidate"),
}


class SignalingRelay:
    """
    Forwards offer/answer/ice-candidate payloads to one target connection.

    Payloads are opaque. A message for a target that is no longer connected
    is dropped without telling the sender; retries belong to the peers.
    """

    def __init__(self, registry: ConnectionRegistry, transport: ConnectionHub,
                 max_payload_bytes: int = MAX_PAYLOAD_BYTES):
        self.registry = registry
        self.transport = transport
        self.max_payload_bytes = max_payload_bytes

    async def handle(self, kind: str, sender_id: str, data: Any) -> bool:
        """Parse a client frame's data for `kind` and relay it."""
        model, field = self._kind(kind)
        if not isinstance(data, dict):
            raise InvalidPayload(f"Invalid {kind} data")
        try:
            message = model.model_validate(data)
        except ValidationError as e:
            raise InvalidPayload(f"Invalid {kind} data", {"errors": e.errors(include_url=False, include_context=False, include_input=False)})
        return await self.relay(kind, sender_id, message.target, getattr(message, field))

    async def relay(self, kind: str, sender_id: str, target_id: str, payload: Any) -> bool:
        """
        Forward `payload` from `sender_id` to `target_id`.

        Returns:
            True if the payload was handed to a live target connection.

        Raises:
            InvalidPayload: unknown kind, missing target or empty payload.
            PayloadTooLarge: serialized payload exceeds max_payload_bytes.
        """
        _, field = self._kind(kind)
        if not isinstance(target_id, str) or not target_id:
            raise InvalidPayload(f"Invalid {kind} target")
        if payload is None or payload == "" or payload == {} or payload == []:
            raise InvalidPayload(f"Invalid {kind} data")
        try:
            size = len(json.dumps(payload, ensure_ascii=False, separators=(",", ":")).encode("utf-8"))
        except (TypeError, ValueError):
            raise InvalidPayload(f"{kind} payload is not JSON serializable")
        if size > self.max_payload_bytes:
            raise PayloadTooLarge(kind, size, self.max_payload_bytes)

        sender_room = self.registry.current_room(sender_id)
        if sender_room is None or sender_room != self.registry.current_room(target_id):
            logger.debug(f"[{kind}] {sender_id} -> {target_id} outside a shared room")

        if not self.registry.is_connected(target_id):
            logger.debug(f"[{kind}] {sender_id} -> {target_id} dropped, target gone")
            return False

        delivered = await self.transport.send(target_id, kind, {field: payload, "from": sender_id})
        logger.info(f"[{kind}] {sender_id} -> {target_id} ({size} bytes)")
        return delivered

    @staticmethod
    def _kind(kind: str):
        try:
            return SIGNALING_KINDS[kind]
        except KeyError:
            raise InvalidPayload(f"Unknown signaling kind {kind}")
