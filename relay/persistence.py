"""
Best-effort mirror of room lifecycle events into the external store.

Writes are queued and applied in order by a single background worker that
hands each blocking Redis call to the default executor. Callers never wait
for a write and a failed write never reaches them: it is logged as
PersistenceUnavailable and the in-memory state stays authoritative.
"""
import asyncio
from datetime import datetime
from functools import partial
from typing import Callable, Optional, Set

import redis

from backend import RedisBackend
from logging_config import get_logger
from relay.errors import PersistenceUnavailable
from relay.room_table import Room

logger = get_logger(__name__)


class PersistenceMirror:
    def __init__(self, backend: Optional[RedisBackend] = None):
        self.backend = backend
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self.backend is not None

    # ----- lifecycle events -----

    def room_created(self, room: Room) -> None:
        if self.enabled:
            self._schedule(f"creation of room {room.id}",
                           partial(self.backend.record_room_created, room.id, room.created_at, room.name))

    def room_closed(self, room: Room) -> None:
        if self.enabled:
            self._schedule(f"closure of room {room.id}",
                           partial(self.backend.record_room_closed, room.id, room.closed_at))

    def participant_joined(self, room_id: str, identity: str, joined_at: datetime) -> None:
        if self.enabled:
            self._schedule(f"{identity} joining room {room_id}",
                           partial(self.backend.record_participant_joined, room_id, identity, joined_at))

    def participant_left(self, room_id: str, identity: str, left_at: datetime) -> None:
        if self.enabled:
            self._schedule(f"{identity} leaving room {room_id}",
                           partial(self.backend.record_participant_left, room_id, identity, left_at))

    # ----- reads -----

    async def active_room_ids(self) -> Set[str]:
        """Room ids the store considers open. Raises PersistenceUnavailable."""
        if not self.enabled:
            raise PersistenceUnavailable("Persistence is disabled")
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, self.backend.get_active_room_ids)
        except redis.RedisError as e:
            raise PersistenceUnavailable(f"Could not read active rooms: {e}") from e

    # ----- worker -----

    def _schedule(self, description: str, write: Callable[[], object]) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())
        self._queue.put_nowait((description, write))

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            description, write = await self._queue.get()
            try:
                await loop.run_in_executor(None, write)
                logger.debug(f"Recorded {description}")
            except redis.RedisError as e:
                err = PersistenceUnavailable(f"Could not record {description}: {e}")
                logger.error(err.message)
            except Exception as e:
                logger.error(f"Unexpected error recording {description}: {e}", exc_info=True)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued write has been attempted."""
        if self._queue is not None:
            await self._queue.join()

    async def close(self) -> None:
        await self.drain()
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        if self.backend is not None:
            try:
                await asyncio.get_running_loop().run_in_executor(None, self.backend.close)
            except redis.RedisError as e:
                logger.debug(f"Error closing Redis client: {e}")
