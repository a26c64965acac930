"""
pytest configuration and fixtures.
"""

import socket
import sys
import time
from pathlib import Path
from typing import Callable, List

import pytest
from loguru import logger

# Add project root to path to allow absolute imports
sys.path.insert(0, str(Path(__file__).parent.parent))


def _wait_until(predicate: Callable[[], bool], timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def log_messages() -> List[str]:
    """Collect loguru messages emitted during a test."""
    messages: List[str] = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def closed_port() -> int:
    """A loopback port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def wait_until() -> Callable[..., bool]:
    """Polling helper for conditions reached on other threads."""
    return _wait_until
