#!/usr/bin/env python3
"""
Directory watcher for the relay client.

Subscribes to creation events in one directory (non-recursively) and runs
every new file through parse -> filter -> send -> delete, one file at a time.
Uses the watchdog library for file system events; the watchdog observer
thread only queues events, the pipeline itself runs on the caller's thread.
"""

import os
import queue
import threading
from pathlib import Path
from typing import Callable, Iterator, List, Mapping, Optional, Protocol, Union

from loguru import logger
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from domains.directory_relay.filters import KeyFilter
from relay.models.schemas import SendResult, WatchEvent
from relay.utils.exceptions import FileParseError, WatchSetupError
from relay.utils.helpers import normalise_path
from relay.utils.properties import load_properties

# Queue markers
_STOP = object()
_CLOSED = object()


class SenderLike(Protocol):
    """Anything that can relay a filtered file."""

    def send(self, filename: str, entries: Mapping[str, str]) -> SendResult:
        ...


class RelayEventHandler(FileSystemEventHandler):
    """Watchdog handler that turns creation events into queued WatchEvents."""

    def __init__(self, directory: Path, events: queue.Queue):
        """
        Initialize event handler.

        Args:
            directory: Normalised directory being watched
            events: Queue consumed by the watcher loop
        """
        super().__init__()
        self.directory = directory
        self.events = events

    def _queue_entry(self, raw_path) -> None:
        path = Path(os.fsdecode(raw_path))
        if normalise_path(path.parent) != self.directory:
            return

        self.events.put(WatchEvent(directory=self.directory, name=path.name))

    def on_created(self, event: FileSystemEvent):
        """Queue newly created files that live directly in the directory."""
        if event.is_directory:
            logger.debug(f"Ignoring new directory: {event.src_path}")
            return

        self._queue_entry(event.src_path)

    def on_moved(self, event: FileSystemEvent):
        """Queue files renamed into the directory under their new name."""
        if event.is_directory:
            return

        dest = getattr(event, "dest_path", None)
        if dest:
            self._queue_entry(dest)

    def on_deleted(self, event: FileSystemEvent):
        """Wake the watcher loop when the watched directory itself goes away."""
        if event.is_directory and normalise_path(Path(os.fsdecode(event.src_path))) == self.directory:
            logger.warning(f"Watched directory removed: {self.directory}")
            self.events.put(_CLOSED)


class DirectoryWatcher:
    """Sequential relay loop over one directory's creation events."""

    def __init__(
        self,
        directory: Union[str, Path],
        key_filter: KeyFilter,
        sender: SenderLike,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        """
        Initialize directory watcher.

        Args:
            directory: Directory to watch for new files
            key_filter: Filter applied to every parsed file
            sender: Relay sender invoked once per file
            observer_factory: Builds the watchdog observer (e.g. PollingObserver)
        """
        self.directory = normalise_path(Path(directory))
        self.key_filter = key_filter
        self.sender = sender

        self._events: queue.Queue = queue.Queue()
        self._stopped = threading.Event()
        self._observer_factory = observer_factory
        self.event_handler = RelayEventHandler(self.directory, self._events)
        self.observer: Optional[Observer] = None

    def start_watching(self):
        """
        Subscribe to creation events in the directory.

        Raises:
            WatchSetupError: If the directory cannot be watched
        """
        if not self.directory.is_dir():
            raise WatchSetupError(f"Not a directory: {self.directory}")

        observer = self._observer_factory()
        observer.daemon = True
        try:
            observer.schedule(self.event_handler, str(self.directory), recursive=False)
            observer.start()
        except OSError as e:
            raise WatchSetupError(f"Cannot watch {self.directory}: {e}") from e

        self.observer = observer
        logger.success(f"Monitoring directory: {self.directory}")

    def stop_watching(self):
        """Stop the watchdog observer."""
        if self.observer is None:
            return

        self.observer.stop()
        self.observer.join()
        self.observer = None
        logger.info("File system observer stopped")

    def stop(self):
        """Ask the watcher loop to finish. Safe to call from any thread."""
        self._stopped.set()
        self._events.put(_STOP)

    def _rearm(self) -> bool:
        if self._stopped.is_set():
            return False

        if not self.directory.is_dir():
            logger.warning(f"Cannot re-arm watch, directory is gone: {self.directory}")
            return False

        if self.observer is not None and not self.observer.is_alive():
            logger.warning(f"Cannot re-arm watch, observer stopped: {self.directory}")
            return False

        return True

    def _next_batch(self) -> List[object]:
        batch = [self._events.get()]
        while True:
            try:
                batch.append(self._events.get_nowait())
            except queue.Empty:
                return batch

    def events(self) -> Iterator[WatchEvent]:
        """
        Yield creation events forever, in delivery order.

        Blocks without timeout until events arrive. Ends when the watch cannot
        be re-armed after a batch or when ``stop()`` is called.
        """
        while True:
            for item in self._next_batch():
                if item is _STOP:
                    return
                if item is _CLOSED:
                    continue
                yield item

            if not self._rearm():
                return

    def process_file(self, path: Path) -> bool:
        """
        Parse, filter, relay and delete one file.

        The file is deleted after every send attempt, whether or not the
        relay reached the server. Files that fail to parse are left in place.

        Args:
            path: Absolute path of the new file

        Returns:
            True if the file was relayed (or attempted) and deleted
        """
        try:
            properties = load_properties(path)
        except FileParseError as e:
            logger.error(f"Failed to process file: {path}. Error: {e}")
            return False

        entries = self.key_filter.filter(properties)
        logger.info(f"File name: {path.name} ({len(entries)} of {len(properties)} entries selected)")

        result = self.sender.send(path.name, entries)
        if not result.ok:
            logger.warning(f"Relay of {path.name} failed, deleting it anyway")

        try:
            path.unlink()
        except OSError as e:
            logger.error(f"Failed to delete file: {path}. Error: {e}")
            return False

        logger.info(f"Processed and deleted file: {path}")
        return True

    def run(self) -> bool:
        """
        Watch the directory and relay new files until the watch ends.

        Returns:
            False if the watch could not be set up, True otherwise
        """
        try:
            self.start_watching()
        except WatchSetupError as e:
            logger.error(f"Error monitoring directory: {e}")
            return False

        try:
            for event in self.events():
                self.process_file(event.path)
        finally:
            self.stop_watching()

        logger.info("Directory watcher stopped")
        return True
