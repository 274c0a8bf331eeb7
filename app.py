from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from contextlib import asynccontextmanager
from typing import Optional
import uuid
import asyncio
import time
from backend import RedisBackend
from constants import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, PERSISTENCE_ENABLED, STATUS_LOG_INTERVAL
from logging_config import get_logger, setup_logging
from relay.errors import InvalidPayload, RelayError, RelayErrorCode
from relay.lifecycle import RoomLifecycleController
from relay.persistence import PersistenceMirror
from relay.registry import ConnectionRegistry
from relay.room_table import RoomTable
from relay.signaling import SignalingRelay
from relay.transport import ConnectionHub
from routers.health import health_router
from routers.rooms import rooms_router
from schemas.signaling import CreateRoomData, Envelope

logger = get_logger(__name__)

# Error event "type" per client event
ERROR_TYPES = {
    "create-room": "create-room-error",
    "join-room": "join-room-error",
    "leave-room": "leave-room-error",
    "offer": "offer-error",
    "answer": "answer-error",
    "ice-candidate": "ice-error",
}


async def send_error(state, connection_id: str, error_type: str, err: RelayError):
    await state.hub.send(connection_id, "error", {"type": error_type, **err.to_dict()})


async def handle_create_room(state, connection_id: str, envelope: Envelope):
    data = envelope.data
    if isinstance(data, dict):
        try:
            request = CreateRoomData.model_validate(data)
        except ValidationError:
            raise InvalidPayload("Invalid create-room data")
        room_id, name = request.roomId, request.name
    else:
        room_id, name = data, None
    room = await state.controller.create_room(connection_id, room_id, name=name)
    return {"success": True, "roomId": room.id}


async def handle_join_room(state, connection_id: str, envelope: Envelope):
    existing_users = await state.controller.join_room(connection_id, envelope.data)
    return {"success": True, "roomId": envelope.data, "existingUsers": existing_users}


async def handle_leave_room(state, connection_id: str, envelope: Envelope):
    left = await state.controller.leave_room(connection_id)
    return {"success": True, "left": left}


async def handle_signaling(state, connection_id: str, envelope: Envelope):
    await state.relay.handle(envelope.event, connection_id, envelope.data)


# Mapping of client events to (handler, acknowledgement required)
HANDLERS = {
    "create-room":   (handle_create_room, True),
    "join-room":     (handle_join_room, True),
    "leave-room":    (handle_leave_room, False),
    "offer":         (handle_signaling, False),
    "answer":        (handle_signaling, False),
    "ice-candidate": (handle_signaling, False),
}


async def handle_frame(state, connection_id: str, raw: str):
    """Dispatch one client frame. Errors are reported to this client only."""
    try:
        envelope = Envelope.model_validate_json(raw)
    except ValidationError:
        logger.warning(f"Malformed frame from connection {connection_id}")
        return await send_error(state, connection_id, "protocol-error", InvalidPayload("Malformed frame"))

    event = envelope.event
    if event not in HANDLERS:
        logger.warning(f"Unknown event {event!r} from connection {connection_id}")
        return await send_error(state, connection_id, "protocol-error", InvalidPayload(f"Unknown event {event}"))

    handler, needs_ack = HANDLERS[event]
    error_type = ERROR_TYPES[event]
    if needs_ack and envelope.ack is None:
        logger.error(f"{event} from connection {connection_id} without an acknowledgement id")
        return await send_error(state, connection_id, error_type, InvalidPayload(f"{event} requires an acknowledgement id"))

    try:
        result = await handler(state, connection_id, envelope)
    except RelayError as e:
        logger.info(f"{event} from connection {connection_id} failed: {e.message}")
        if envelope.ack is not None:
            return await state.hub.ack(connection_id, envelope.ack, {"success": False, "error": e.message, "code": e.code.value})
        return await send_error(state, connection_id, error_type, e)
    except Exception as e:
        logger.error(f"Error handling {event} from connection {connection_id}: {e}", exc_info=True)
        err = RelayError("Internal server error")
        if envelope.ack is not None:
            return await state.hub.ack(connection_id, envelope.ack, {"success": False, "error": err.message, "code": RelayErrorCode.INTERNAL_ERROR.value})
        return await send_error(state, connection_id, error_type, err)

    if envelope.ack is not None:
        await state.hub.ack(connection_id, envelope.ack, result if result is not None else {"success": True})


async def websocket_endpoint(websocket: WebSocket):
    """One connection: accept, dispatch frames in order, then tear down membership."""
    state = websocket.app.state
    connection_id = str(uuid.uuid4())
    reason = "transport close"

    await websocket.accept()
    state.hub.attach(connection_id, websocket)
    state.controller.connect(connection_id)
    logger.info(f"New connection: {connection_id}")

    try:
        await state.hub.send(connection_id, "connected", {"userId": connection_id})
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                reason = f"client disconnect (code {message.get('code')})"
                break
            raw = message.get("text")
            if raw is None:
                await send_error(state, connection_id, "protocol-error", InvalidPayload("Binary frames are not supported"))
                continue
            await handle_frame(state, connection_id, raw)
    except Exception as e:
        reason = f"transport error: {e}"
        logger.error(f"WebSocket error for connection {connection_id}: {e}", exc_info=True)
    finally:
        state.hub.detach(connection_id)
        # Runs to completion even if this task is cancelled
        await asyncio.shield(state.controller.disconnect(connection_id, reason))


async def announce_shutdown(app: FastAPI, message: str) -> int:
    """Tell every connected client the server is going away."""
    delivered = await app.state.hub.broadcast("server-shutdown", {"message": message})
    logger.info(f"Sent server-shutdown to {delivered} connections")
    return delivered


async def log_status(app: FastAPI):
    state = app.state
    while True:
        await asyncio.sleep(STATUS_LOG_INTERVAL)
        logger.info(f"[status] active connections: {len(state.hub)} | active rooms: {len(state.rooms)}")


def log_unhandled(loop, context):
    exc = context.get("exception")
    logger.error(f"Unhandled error: {context.get('message')}", exc_info=exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    loop = asyncio.get_running_loop()
    loop.set_exception_handler(log_unhandled)
    mirror = app.state.mirror
    if mirror.enabled:
        await loop.run_in_executor(None, mirror.backend.ping)
    status_task = asyncio.create_task(log_status(app))
    logger.info("Signaling relay started")
    try:
        yield
    finally:
        status_task.cancel()
        try:
            await status_task
        except asyncio.CancelledError:
            pass
        await mirror.close()
        logger.info("Signaling relay stopped")


def create_app(backend: Optional[RedisBackend] = None) -> FastAPI:
    """Build the relay application with fresh room and connection state."""
    app = FastAPI(title="Room signaling relay", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.include_router(rooms_router)
    app.include_router(health_router)
    app.add_api_websocket_route("/ws", websocket_endpoint)

    app.state.rooms = RoomTable()
    app.state.registry = ConnectionRegistry()
    app.state.hub = ConnectionHub()
    app.state.mirror = PersistenceMirror(backend)
    app.state.controller = RoomLifecycleController(app.state.rooms, app.state.registry, app.state.hub, app.state.mirror)
    app.state.relay = SignalingRelay(app.state.registry, app.state.hub)
    app.state.started_at = time.monotonic()

    logger.info(f"Relay application initialized (persistence {'on' if backend is not None else 'off'})")
    return app


setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
app = create_app(RedisBackend() if PERSISTENCE_ENABLED else None)
