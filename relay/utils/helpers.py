"""
Helper utilities for the file relay.

Common functions used by both the client and the server.
"""

import sys
from pathlib import Path

from loguru import logger

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str = "INFO") -> None:
    """Replace loguru's default sink with the relay's stderr sink."""
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level)


def normalise_path(path: Path) -> Path:
    """Return a resolved version of ``path`` without forcing existence."""
    try:
        return path.expanduser().resolve()
    except FileNotFoundError:
        return path.expanduser().absolute()


def format_address(host: str, port: int) -> str:
    """Format a TCP endpoint for log lines."""
    return f"tcp://{host or '0.0.0.0'}:{port}"
