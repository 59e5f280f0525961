"""
Standardized logging configuration.

stdout carries the MCP stdio transport, so every handler writes to stderr.
"""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"
DEFAULT_LEVEL = "INFO"

_configured = False


def get_logger(name: str) -> logging.Logger:
    """Get a module logger. Call configure_logging() once at startup."""
    return logging.getLogger(name)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root 'fhir_mcp' logger.

    Safe to call repeatedly; only the level is updated after the first call.

    Args:
        level: Level name (DEBUG, INFO, ...). Defaults to FHIR_MCP_LOG_LEVEL or INFO.
    """
    global _configured

    level_name = (level or os.getenv("FHIR_MCP_LOG_LEVEL") or DEFAULT_LEVEL).upper()
    numeric_level = getattr(logging, level_name, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger("fhir_mcp")
    root.setLevel(numeric_level)

    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = False
    _configured = True
