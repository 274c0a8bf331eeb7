import redis
from datetime import datetime
from typing import Optional, Set
from constants import REDIS_HOST, REDIS_PORT, REDIS_PASSWORD
from redis_keys import REDIS_ROOM_RECORD_KEY, REDIS_ROOM_PARTICIPANTS_KEY, REDIS_PARTICIPANT_KEY, REDIS_ACTIVE_ROOMS_KEY
from logging_config import get_logger

logger = get_logger(__name__)


class RedisBackend:
    """Room and participant history kept in Redis. Audit only; the live state is in memory."""

    def __init__(self, redis_client: Optional[redis.Redis] = None):
        if redis_client is None:
            logger.info(f"Initializing RedisBackend with connection to {REDIS_HOST}:{REDIS_PORT}")
            redis_client = redis.Redis(host=REDIS_HOST, port=REDIS_PORT, password=REDIS_PASSWORD, decode_responses=True)
        self.redis_client = redis_client

    def ping(self) -> bool:
        try:
            self.redis_client.ping()
            logger.info("Redis client connected successfully")
            return True
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            return False

    def record_room_created(self, room_id: str, created_at: datetime, name: Optional[str] = None):
        logger.debug(f"Recording creation of room {room_id}")
        key = REDIS_ROOM_RECORD_KEY.format(slug=room_id)
        room_data = {"id": room_id, "created_at": created_at.isoformat()}
        if name:
            room_data["name"] = name
        pipe = self.redis_client.pipeline()
        # A reused identifier starts a fresh record
        pipe.delete(key, REDIS_ROOM_PARTICIPANTS_KEY.format(slug=room_id))
        pipe.hset(key, mapping=room_data)
        pipe.sadd(REDIS_ACTIVE_ROOMS_KEY, room_id)
        pipe.execute()
        return True

    def record_room_closed(self, room_id: str, closed_at: datetime):
        logger.debug(f"Recording closure of room {room_id}")
        pipe = self.redis_client.pipeline()
        pipe.hset(REDIS_ROOM_RECORD_KEY.format(slug=room_id), "closed_at", closed_at.isoformat())
        pipe.srem(REDIS_ACTIVE_ROOMS_KEY, room_id)
        pipe.execute()
        return True

    def record_participant_joined(self, room_id: str, connection_id: str, joined_at: datetime):
        logger.debug(f"Recording {connection_id} joining room {room_id}")
        key = REDIS_PARTICIPANT_KEY.format(slug=room_id, connection_id=connection_id)
        pipe = self.redis_client.pipeline()
        pipe.hset(key, mapping={"joined_at": joined_at.isoformat()})
        pipe.hdel(key, "left_at")
        pipe.sadd(REDIS_ROOM_PARTICIPANTS_KEY.format(slug=room_id), connection_id)
        pipe.execute()
        return True

    def record_participant_left(self, room_id: str, connection_id: str, left_at: datetime):
        logger.debug(f"Recording {connection_id} leaving room {room_id}")
        key = REDIS_PARTICIPANT_KEY.format(slug=room_id, connection_id=connection_id)
        self.redis_client.hset(key, "left_at", left_at.isoformat())
        return True

    def get_active_room_ids(self) -> Set[str]:
        return set(self.redis_client.smembers(REDIS_ACTIVE_ROOMS_KEY))

    def close(self):
        self.redis_client.close()
