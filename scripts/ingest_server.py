#!/usr/bin/env python3
"""Ingestion server.

Accepts relay sessions on ``serverPort`` with at most ``maxThreads`` sessions
processed at once, and writes each session to a file named by its filename
frame in the current working directory.

Usage::

    ingest-server server.properties
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import Optional

from loguru import logger

from domains.ingest_server.acceptor import ConnectionAcceptor
from domains.ingest_server.pool import BoundedWorkerPool
from domains.ingest_server.session import handle_connection
from relay.utils.config import load_server_settings
from relay.utils.exceptions import ConfigurationError
from relay.utils.helpers import setup_logging


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(
        description="Receive relayed key/value sessions and write them to files.",
    )
    parser.add_argument(
        "config",
        type=Path,
        help="Path to the server configuration file.",
    )

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the ingestion server."""

    args = parse_args(argv)
    setup_logging()

    try:
        settings = load_server_settings(args.config)
        settings.ensure_output_directory()
    except ConfigurationError as e:
        logger.error(f"Failed to start server: {e}")
        return 1

    setup_logging(settings.log_level)

    pool = BoundedWorkerPool(settings.max_threads)
    acceptor = ConnectionAcceptor(
        port=settings.server_port,
        pool=pool,
        handler=handle_connection,
        host=settings.bind_address,
    )

    try:
        acceptor.bind()
    except OSError as e:
        logger.error(f"Failed to start server: {e}")
        pool.shutdown(wait=False)
        return 1

    stopping = threading.Event()

    def _signal_handler(signum, frame):  # noqa: D401
        logger.info(f"Received signal {signum}, shutting down.")
        stopping.set()
        acceptor.shutdown()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    logger.info(f"Worker pool capacity: {settings.max_threads}")

    try:
        acceptor.serve_forever()
    finally:
        if stopping.is_set():
            # Stalled peers never send the sentinel; do not wait on them
            acceptor.abort_sessions()
        pool.shutdown(wait=not stopping.is_set())

    logger.info("Ingestion server stopped.")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
