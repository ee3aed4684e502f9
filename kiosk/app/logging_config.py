"""Logging bootstrap for the kiosk backend."""
from __future__ import annotations

from logging.config import dictConfig
from typing import Any, Dict

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Third-party loggers that drown out session lifecycle lines at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "multipart")


def build_logging_config(level: str = "INFO", *, access_log: bool = False) -> Dict[str, Any]:
    """dictConfig payload sending kiosk and uvicorn records to one console handler.

    Monitors poll ``/health`` and the kiosk posts uploads all day, so uvicorn's
    per-request access lines are only kept when ``access_log`` is set.
    """

    level = level.upper()
    loggers: Dict[str, Any] = {name: {"level": "WARNING"} for name in _NOISY_LOGGERS}
    loggers["kiosk"] = {"level": level}
    loggers["uvicorn.error"] = {"level": level}
    loggers["uvicorn.access"] = {"level": "INFO" if access_log else "WARNING"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": level,
            }
        },
        "loggers": loggers,
        "root": {"level": level, "handlers": ["console"]},
    }


def configure_logging(level: str = "INFO", *, access_log: bool = False) -> None:
    dictConfig(build_logging_config(level, access_log=access_log))


__all__ = ["LOG_FORMAT", "build_logging_config", "configure_logging"]
