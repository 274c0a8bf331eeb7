import asyncio
import uvicorn
from constants import HOST, PORT, LOG_LEVEL, LOG_FILE, SHUTDOWN_GRACE_SECONDS, SHUTDOWN_MESSAGE, WS_MAX_MESSAGE_BYTES
from logging_config import setup_logging

# Setup logging before importing app
setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)

from app import app, announce_shutdown
from logging_config import get_logger

logger = get_logger(__name__)


class RelayServer(uvicorn.Server):
    """Uvicorn server that warns connected clients before closing their sockets."""

    async def shutdown(self, sockets=None):
        logger.info("Shutdown signal received")
        try:
            if await announce_shutdown(app, SHUTDOWN_MESSAGE):
                await asyncio.sleep(SHUTDOWN_GRACE_SECONDS)
        except Exception as e:
            logger.error(f"Error announcing shutdown: {e}", exc_info=True)
        await super().shutdown(sockets=sockets)


if __name__ == "__main__":
    logger.info(f"Starting signaling relay on {HOST}:{PORT}")
    config = uvicorn.Config(
        app,
        host=HOST,
        port=PORT,
        ws_max_size=WS_MAX_MESSAGE_BYTES,
        log_config=None,  # keep the logging configured above
    )
    RelayServer(config).run()
