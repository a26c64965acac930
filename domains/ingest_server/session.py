"""
Session decoding and materialization for the ingestion server.

Each connection carries one session: a filename frame, any number of data
frames, and the ``"EOF"`` sentinel. Every data frame, key or value alike,
becomes one line of the output file; key/value pairing is not rebuilt.
"""

import os
import socket
import tempfile
from pathlib import Path
from typing import BinaryIO, Optional, Tuple, Union

from loguru import logger

from relay.models.schemas import Session
from relay.utils.exceptions import FrameError, ServerSessionError
from relay.utils.frames import FrameKind, classify, read_frame


def decode_session(stream: BinaryIO) -> Session:
    """
    Read one session from ``stream`` up to and including the sentinel.

    Raises:
        FrameError: If the stream ends or breaks before the sentinel
    """
    session = Session(filename=read_frame(stream))

    while True:
        text = read_frame(stream)
        if classify(text) is FrameKind.END_OF_SESSION:
            return session
        session.lines.append(text)


def materialize(session: Session, directory: Optional[Union[str, Path]] = None) -> Path:
    """
    Write a session's lines to the file named by its filename frame.

    The content is written to a temporary sibling and renamed over the
    target, so concurrent sessions for the same name never interleave; the
    last rename wins.

    Args:
        session: Decoded session
        directory: Base directory for the relative filename; defaults to the
            process working directory

    Returns:
        Path of the written file
    """
    target = Path(directory or ".") / session.filename

    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=target.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(session.render())
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    return target


def handle_connection(
    conn: socket.socket,
    address: Tuple[str, int],
    directory: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """
    Decode one connection's session and write it out.

    Runs on a worker thread and owns ``conn`` until it returns. Errors are
    logged and end only this session.

    Returns:
        Path of the written file, or None if the session failed
    """
    peer = f"{address[0]}:{address[1]}" if address else "unknown peer"

    try:
        with conn, conn.makefile("rb") as stream:
            session = decode_session(stream)
    except (OSError, FrameError) as e:
        error = ServerSessionError(f"Session from {peer} failed while reading: {e}")
        logger.error(str(error))
        return None

    logger.info(f"Received file name from {peer}: {session.filename} ({len(session.lines)} lines)")

    try:
        path = materialize(session, directory)
    except OSError as e:
        error = ServerSessionError(f"Error writing to file {session.filename}: {e}")
        logger.error(str(error))
        return None

    logger.success(f"Data written to file: {path}")
    return path
