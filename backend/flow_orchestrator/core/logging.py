# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Structured logging for the flow orchestrator.

Engine and API loggers write one JSON object per line (or plain text for
local runs). Structured fields are passed with log_event and land at the
top level of the JSON record.
"""

import logging
import json
import sys
from datetime import datetime, timezone
from typing import Optional, Any
from pathlib import Path


# Attributes every LogRecord carries; anything else came in through `extra`
_STANDARD_ATTRS = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, extra fields merged in."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable logs for local development."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )


def get_logger(
    name: str,
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Get a logger writing to stdout (and optionally a file).

    Calling again for the same name reconfigures it instead of stacking
    handlers.

    Args:
        name: Logger name
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: "json" or "text"
        log_file: Optional log file path
    """
    logger = logging.getLogger(name)
    logger.setLevel(log_level.upper())

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    formatter = JSONFormatter() if log_format == "json" else TextFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_event(
    logger: logging.Logger,
    event: str,
    level: str = "INFO",
    **fields: Any
) -> None:
    """
    Log `event` with structured fields.

    Fields set to None are dropped. Field names must not collide with
    LogRecord attributes (e.g. `name`, `module`).
    """
    extra = {key: value for key, value in fields.items() if value is not None}
    logger.log(getattr(logging, level.upper()), event, extra=extra)


def get_api_logger() -> logging.Logger:
    """Logger for the HTTP routes."""
    return get_service_logger("api")


def get_service_logger(service_name: str) -> logging.Logger:
    """Logger for an engine component, configured from Config."""
    from flow_orchestrator.core.config import get_config
    settings = get_config()
    return get_logger(
        f"flow_orchestrator.{service_name}",
        log_level=settings.log_level,
        log_format=settings.log_format
    )
