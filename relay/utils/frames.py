"""
Wire codec shared by the relay client and the ingestion server.

A frame is one string: a 2-byte big-endian byte count followed by the UTF-8
bytes. A session is ``filename, key1, value1, ..., keyN, valueN, "EOF"`` and
is delimited only by the sentinel, so a key or value equal to ``"EOF"`` ends
the session early on the receiving side.
"""

import struct
from enum import Enum
from typing import BinaryIO, Iterator, Mapping

from relay.utils.exceptions import FrameError

SENTINEL = "EOF"
MAX_FRAME_BYTES = 0xFFFF

_LENGTH = struct.Struct(">H")


class FrameKind(Enum):
    """Kinds of frame a receiver can observe."""

    DATA = "data"
    END_OF_SESSION = "end_of_session"


def classify(text: str) -> FrameKind:
    """Classify a decoded frame by exact comparison with the sentinel."""
    return FrameKind.END_OF_SESSION if text == SENTINEL else FrameKind.DATA


def encode_frame(text: str) -> bytes:
    """
    Encode one string as a length-prefixed frame.

    Raises:
        FrameError: If the UTF-8 encoding exceeds 65535 bytes
    """
    try:
        payload = text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise FrameError(f"Cannot encode frame: {e}") from e

    if len(payload) > MAX_FRAME_BYTES:
        raise FrameError(
            f"Frame of {len(payload)} bytes exceeds the {MAX_FRAME_BYTES} byte limit"
        )

    return _LENGTH.pack(len(payload)) + payload


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = b""
    while len(data) < size:
        chunk = stream.read(size - len(data))
        if not chunk:
            raise FrameError(
                f"Stream ended after {len(data)} of {size} expected bytes"
            )
        data += chunk
    return data


def read_frame(stream: BinaryIO) -> str:
    """
    Read exactly one frame from a binary stream.

    Args:
        stream: Readable binary file-like object (e.g. ``socket.makefile("rb")``)

    Returns:
        Decoded string

    Raises:
        FrameError: If the stream ends mid-frame or the payload is not UTF-8
    """
    (length,) = _LENGTH.unpack(_read_exact(stream, _LENGTH.size))
    payload = _read_exact(stream, length) if length else b""

    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FrameError(f"Frame payload is not valid UTF-8: {e}") from e


def iter_session_frames(filename: str, entries: Mapping[str, str]) -> Iterator[str]:
    """Yield the frame strings of one session in wire order."""
    yield filename
    for key, value in entries.items():
        yield key
        yield value
    yield SENTINEL
