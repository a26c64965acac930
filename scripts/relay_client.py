#!/usr/bin/env python3
"""Directory relay client.

Watches the configured directory for new ``key=value`` files, relays the
entries whose keys match ``keyPattern`` to the ingestion server and deletes
each file after the send attempt.

Usage::

    relay-client client.properties
"""

from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from domains.directory_relay.filters import KeyFilter
from domains.directory_relay.sender import RelaySender
from domains.directory_relay.watcher import DirectoryWatcher
from relay.utils.config import load_client_settings
from relay.utils.exceptions import ConfigurationError
from relay.utils.helpers import setup_logging


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(
        description="Relay filtered key/value files from a directory to an ingestion server.",
    )
    parser.add_argument(
        "config",
        type=Path,
        help="Path to the client configuration file.",
    )

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the relay client."""

    args = parse_args(argv)
    setup_logging()

    try:
        settings = load_client_settings(args.config)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration. Please check the config file: {e}")
        return 1

    setup_logging(settings.log_level)

    watcher = DirectoryWatcher(
        directory=settings.directory_path,
        key_filter=KeyFilter(settings.compiled_pattern()),
        sender=RelaySender(settings.server_address, settings.server_port),
    )

    def _signal_handler(signum, frame):  # noqa: D401
        logger.info(f"Received signal {signum}, shutting down.")
        watcher.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    logger.info(
        f"Relaying {settings.directory_path} to "
        f"{settings.server_address}:{settings.server_port} (keys matching {settings.key_pattern!r})"
    )

    if not watcher.run():
        return 1

    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
