"""Logging setup for the API and CLI entrypoints.

Library modules only call ``logging.getLogger(__name__)``; nothing below the
entrypoints configures handlers.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Configure the root logger once, with a single stream handler."""
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: {level!r}")
        level = numeric
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("gateway_engine").setLevel(level)
    # SQL echo is controlled by the engine's echo flag, not the log level.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
