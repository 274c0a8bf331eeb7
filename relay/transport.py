import asyncio
import json
from typing import Any, Dict, Iterable, Optional, Union

from fastapi import WebSocket

from logging_config import get_logger

logger = get_logger(__name__)

AckId = Union[int, str]


def frame(event: str, data: Any = None, ack: Optional[AckId] = None) -> str:
    message = {"event": event, "data": data}
    if ack is not None:
        message["ack"] = ack
    return json.dumps(message)


class ConnectionHub:
    """
    Outbound side of the WebSocket transport.

    Tracks the socket of every accepted connection by its identity and
    offers direct sends, room-scoped fan-out and acknowledgements. A failed
    send never raises; the receive loop of that connection notices the drop
    and runs the disconnect cleanup.
    """

    def __init__(self):
        # Format: {connection_id: websocket}
        self._sockets: Dict[str, WebSocket] = {}

    def attach(self, identity: str, websocket: WebSocket) -> None:
        self._sockets[identity] = websocket
        logger.debug(f"Attached connection {identity} (local connections: {len(self._sockets)})")

    def detach(self, identity: str) -> None:
        self._sockets.pop(identity, None)
        logger.debug(f"Detached connection {identity} (local connections: {len(self._sockets)})")

    async def _send_text(self, identity: str, text: str) -> bool:
        ws = self._sockets.get(identity)
        if ws is None:
            return False
        try:
            await ws.send_text(text)
            return True
        except Exception as e:
            logger.warning(f"Error sending to connection {identity}: {e}")
            return False

    async def send(self, identity: str, event: str, data: Any = None) -> bool:
        return await self._send_text(identity, frame(event, data))

    async def ack(self, identity: str, ack_id: AckId, data: Any) -> bool:
        return await self._send_text(identity, frame("ack", data, ack=ack_id))

    async def send_many(self, identities: Iterable[str], event: str, data: Any = None, exclude: Optional[str] = None) -> int:
        """Send one event to every identity except `exclude`. Returns the number delivered."""
        text = frame(event, data)
        targets = [i for i in identities if i != exclude]
        if not targets:
            return 0
        results = await asyncio.gather(*(self._send_text(i, text) for i in targets))
        return sum(1 for delivered in results if delivered)

    async def broadcast(self, event: str, data: Any = None) -> int:
        return await self.send_many(list(self._sockets), event, data)

    def __len__(self) -> int:
        return len(self._sockets)
