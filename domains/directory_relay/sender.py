"""
Relay sender for the directory relay client.

Opens one TCP connection per source file, writes the session frames and
closes the connection. Nothing is ever read back from the server, and
transport failures are logged here rather than raised, so callers cannot
tell a delivered file from a lost one.
"""

import socket
from typing import Mapping, Optional

from loguru import logger

from relay.models.schemas import SendResult
from relay.utils.exceptions import FrameError, TransportError
from relay.utils.frames import encode_frame, iter_session_frames
from relay.utils.helpers import format_address


class RelaySender:
    """Fire-and-forget sender bound to one ingestion server."""

    def __init__(self, host: str, port: int, connect_timeout: Optional[float] = None):
        """
        Initialize relay sender.

        Args:
            host: Ingestion server host name or address
            port: Ingestion server TCP port
            connect_timeout: Optional timeout for establishing the connection
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout

    def _transmit(self, filename: str, entries: Mapping[str, str]) -> int:
        sent = 0
        with socket.create_connection((self.host, self.port), timeout=self.connect_timeout) as sock:
            sock.settimeout(None)
            for text in iter_session_frames(filename, entries):
                sock.sendall(encode_frame(text))
                sent += 1
        return sent

    def send(self, filename: str, entries: Mapping[str, str]) -> SendResult:
        """
        Send one session for ``filename``.

        Args:
            filename: Name the server should give the materialized file
            entries: Filtered key/value pairs to relay

        Returns:
            SendResult describing the attempt; never raises for I/O errors
        """
        endpoint = format_address(self.host, self.port)

        try:
            frames = self._transmit(filename, entries)
        except (OSError, FrameError) as e:
            error = TransportError(f"Failed to relay {filename} to {endpoint}: {e}")
            logger.error(str(error))
            return SendResult(filename=filename, ok=False, error=str(e))

        logger.info(f"Relayed {filename}: {len(entries)} entries, {frames} frames to {endpoint}")
        return SendResult(filename=filename, ok=True, frames_sent=frames)


def send(filename: str, entries: Mapping[str, str], host: str, port: int) -> SendResult:
    """Relay one session over a fresh connection."""
    return RelaySender(host, port).send(filename, entries)
