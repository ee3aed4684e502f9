"""Tests for logging configuration."""

import logging

from kiosk.app.logging_config import build_logging_config, configure_logging


def test_access_log_is_quiet_by_default() -> None:
    config = build_logging_config("debug")

    assert config["root"]["level"] == "DEBUG"
    assert config["loggers"]["kiosk"]["level"] == "DEBUG"
    assert config["loggers"]["uvicorn.access"]["level"] == "WARNING"
    assert config["loggers"]["httpx"]["level"] == "WARNING"

    assert build_logging_config(access_log=True)["loggers"]["uvicorn.access"]["level"] == "INFO"


def test_configure_logging_applies_levels() -> None:
    configure_logging("WARNING")

    assert logging.getLogger("kiosk").level == logging.WARNING
    assert logging.getLogger("uvicorn.access").level == logging.WARNING

    configure_logging("INFO", access_log=True)

    assert logging.getLogger("kiosk").level == logging.INFO
    assert logging.getLogger("uvicorn.access").level == logging.INFO
