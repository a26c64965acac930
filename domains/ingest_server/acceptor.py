"""
Connection acceptor for the ingestion server.

Binds one listening socket and accepts connections one at a time, handing
each to the bounded worker pool. When the pool is full the hand-off blocks,
so waiting clients queue in the OS listen backlog rather than being refused.
"""

import socket
import threading
import time
from typing import Callable, Optional, Set, Tuple

from loguru import logger

from domains.ingest_server.pool import BoundedWorkerPool
from relay.utils.helpers import format_address

ConnectionHandler = Callable[[socket.socket, Tuple[str, int]], object]


class ConnectionAcceptor:
    """Sequential accept loop feeding a bounded worker pool."""

    def __init__(
        self,
        port: int,
        pool: BoundedWorkerPool,
        handler: ConnectionHandler,
        host: str = "",
        backlog: int = 50,
        accept_retry_delay: float = 0.1,
    ):
        """
        Initialize connection acceptor.

        Args:
            port: TCP port to listen on (0 lets the OS choose)
            pool: Worker pool that runs ``handler``
            handler: Called as ``handler(conn, address)`` on a worker thread
            host: Interface to bind; empty string binds all interfaces
            backlog: Listen backlog for connections waiting on the pool
            accept_retry_delay: Pause after a failed accept() before retrying
        """
        self.host = host
        self.port = port
        self.pool = pool
        self.handler = handler
        self.backlog = backlog
        self.accept_retry_delay = accept_retry_delay

        self._socket: Optional[socket.socket] = None
        self._running = threading.Event()
        self._connections: Set[socket.socket] = set()
        self._connections_lock = threading.Lock()
        self.ready = threading.Event()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound ``(host, port)``; only meaningful after ``bind()``."""
        if self._socket is None:
            return self.host, self.port
        return self._socket.getsockname()[:2]

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    def bind(self):
        """
        Create, bind and listen on the server socket.

        Raises:
            OSError: If the address cannot be bound
        """
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((self.host, self.port))
            sock.listen(self.backlog)
        except OSError:
            sock.close()
            raise

        self._socket = sock
        logger.success(f"Server started on {format_address(self.host, self.address[1])}")

    def serve_forever(self):
        """Accept connections until ``shutdown()`` is called."""
        if self._socket is None:
            self.bind()

        self._running.set()
        self.ready.set()

        last_error = None

        try:
            while self._running.is_set():
                try:
                    conn, address = self._socket.accept()
                except OSError as e:
                    if not self._running.is_set():
                        break
                    # Repeated failures (e.g. EMFILE) are logged once
                    if (e.errno, str(e)) != last_error:
                        logger.error(f"Accept failed: {e}")
                        last_error = (e.errno, str(e))
                    time.sleep(self.accept_retry_delay)
                    continue

                if last_error is not None:
                    logger.info("Accepting connections again")
                    last_error = None

                logger.debug(f"Accepted connection from {address[0]}:{address[1]}")
                with self._connections_lock:
                    self._connections.add(conn)
                try:
                    self.pool.submit(self._handle, conn, address)
                except RuntimeError:
                    with self._connections_lock:
                        self._connections.discard(conn)
                    conn.close()
                    raise
        finally:
            self._close()

        logger.info("Accept loop stopped")

    def _handle(self, conn: socket.socket, address: Tuple[str, int]):
        try:
            self.handler(conn, address)
        finally:
            with self._connections_lock:
                self._connections.discard(conn)

    @property
    def open_sessions(self) -> int:
        """Number of accepted connections whose handler has not finished."""
        with self._connections_lock:
            return len(self._connections)

    def abort_sessions(self) -> int:
        """
        Shut down every in-flight session socket.

        Handlers blocked on a read see end of stream, log the truncated
        session and return without writing a file.

        Returns:
            Number of sessions aborted
        """
        with self._connections_lock:
            connections = list(self._connections)

        for conn in connections:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass

        if connections:
            logger.warning(f"Aborted {len(connections)} in-flight session(s)")
        return len(connections)

    def shutdown(self):
        """Stop the accept loop. Safe to call from any thread."""
        self._running.clear()
        sock = self._socket
        if sock is not None:
            try:
                # Unblock accept() in the serving thread
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()

    def _close(self):
        if self._socket is not None:
            self._socket.close()
            self._socket = None
