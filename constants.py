import os

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", 3000))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("LOG_FILE", None)

REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = int(os.getenv("REDIS_PORT", 6379))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", None)

PERSISTENCE_ENABLED = os.getenv("PERSISTENCE_ENABLED", "true").lower() in ("1", "true", "yes")

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:5174").split(",") if o.strip()]

# Seconds between server-shutdown broadcast and connections being closed
SHUTDOWN_GRACE_SECONDS = float(os.getenv("SHUTDOWN_GRACE_SECONDS", 5))
STATUS_LOG_INTERVAL = float(os.getenv("STATUS_LOG_INTERVAL", 60))

MAX_ROOM_ID_LENGTH = 100
MAX_PAYLOAD_BYTES = 100_000
WS_MAX_MESSAGE_BYTES = 1024 * 1024

SHUTDOWN_MESSAGE = "The server is going down for maintenance. Please reconnect shortly."
