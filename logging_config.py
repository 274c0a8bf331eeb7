import logging
import logging.config
from pathlib import Path
from typing import Optional


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level name, e.g. "INFO" or "DEBUG".
        log_file: Optional path of a size-rotated log file. Its directory is
            created when missing. Console logging is always enabled.
    """
    level = (log_level or "INFO").upper()

    handlers = {
        "console": {"class": "logging.StreamHandler",
                    "formatter": "default",
                    "level": level},
    }
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {"class": "logging.handlers.RotatingFileHandler",
                            "formatter": "default",
                            "filename": log_file,
                            "maxBytes": 10 * 1024 * 1024,    # 10 MiB
                            "backupCount": 5,
                            "encoding": "utf-8",
                            "level": level}

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,          # keep uvicorn logs
        "formatters": {
            "default": {
                "format": "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
                "datefmt": "%d-%m-%Y %H:%M:%S",
            },
        },
        "handlers": handlers,
        "root": {"level": level, "handlers": list(handlers)},
    })


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
