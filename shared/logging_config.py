"""Structured JSON logging configuration for applications embedding the sync engine."""

from __future__ import annotations

import logging

from pythonjsonlogger import json as jsonlogger

from shared.log import ROOT_LOGGER_NAME, TRACE


def configure_logging(log_level: str, logger_name: str | None = None) -> logging.Logger:
    """Configure a logger with structured JSON output.

    Output format: {"ts": "...", "level": "...", "name": "...", "msg": "..."}

    Args:
        log_level: Logging level string (e.g., "info", "debug", "trace").
        logger_name: Logger to configure. Defaults to the root logger; pass
                     "kinex_sync" to scope output to this library only.

    Returns:
        The configured logger.
    """
    if log_level.lower() == "trace":
        level = TRACE
    else:
        level = getattr(logging, log_level.upper(), logging.INFO)

    formatter = jsonlogger.JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={
            "asctime": "ts",
            "levelname": "level",
            "message": "msg",
        },
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    target = logging.getLogger(logger_name)
    # Clear any existing handlers to avoid duplicate output
    target.handlers.clear()
    target.addHandler(handler)
    target.setLevel(level)
    if logger_name == ROOT_LOGGER_NAME:
        target.propagate = False
    return target
