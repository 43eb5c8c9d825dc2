"""
=============================================================================
LOW-LEVEL TCP SOCKET SERVER
=============================================================================

Owns the listening socket and the accept loop. Every accepted client is
wrapped in a Connection and handed to a callback on its own thread.

=============================================================================
LIFECYCLE
=============================================================================

    bind()          create socket, set options, bind, listen
        │           (errors surface here, before anything is served)
        ▼
    serve(handler)  accept loop, BLOCKS until stop()
        │
        └──► while running:
                accept()  (1 s timeout as a fallback wake-up)
                Connection(...)
                Thread(target=handler, args=(conn,)).start()

    stop()          flag the loop to exit, then shut down and close the
                    listener so a blocked accept() returns at once and new
                    clients are refused; safe from any thread, idempotent,
                    and sticks even if serve() has not started yet

Splitting bind() from serve() lets the caller report "cannot bind" as a
startup error and print the URL only once the port is really ours.

=============================================================================
ONE THREAD PER CONNECTION
=============================================================================

There is no pool and no upper bound. A download server has a handful of
clients, and each one may hold its thread for minutes while a large file
streams. A bounded pool would make the 5th client wait for the 1st to
finish. The kernel's listen backlog is the only backpressure.

Connection threads are daemons: once the drain timeout has passed, the
process exits without waiting for transfers that are still running.

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR   rebind right after a previous run, despite TIME_WAIT
TCP_NODELAY    send headers immediately instead of waiting for more data

=============================================================================
"""

import logging
import socket
import threading
from typing import Callable, Optional, Tuple

from .connection import Connection


logger = logging.getLogger(__name__)


# How often the accept loop wakes up to check the running flag
ACCEPT_POLL_INTERVAL = 1.0


class SocketServer:
    """
    TCP listener with a thread-per-connection accept loop.

    Usage:
        server = SocketServer("0.0.0.0", 8080)
        server.bind()                      # raises OSError if the port is taken
        threading.Thread(target=server.serve, args=(handle,)).start()
        ...
        server.stop()
    """

    def __init__(
        self,
        host: str,
        port: int,
        backlog: int = 128,
        buffer_size: int = 8192,
        timeout: Optional[float] = 30.0,
        keep_alive_timeout: float = 5.0,
        max_request_size: int = 64 * 1024,
    ):
        self.host = host
        self.port = port
        self.backlog = backlog
        self.buffer_size = buffer_size
        self.timeout = timeout
        self.keep_alive_timeout = keep_alive_timeout
        self.max_request_size = max_request_size

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._stop_requested = threading.Event()
        self._stopped = threading.Event()
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port). The port is the real one even if 0 was requested."""
        sock = self._socket
        if sock is not None:
            try:
                return sock.getsockname()[:2]
            except OSError:
                pass
        return (self.host, self.port)

    def _create_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(ACCEPT_POLL_INTERVAL)
        return sock

    def bind(self) -> None:
        """
        Create, bind and listen.

        Raises:
            OSError: If the address cannot be bound (port in use,
                     permission denied, unknown address).
        """
        sock = self._create_socket()
        try:
            sock.bind((self.host, self.port))
            sock.listen(self.backlog)
        except OSError:
            sock.close()
            raise

        self._socket = sock
        self.port = sock.getsockname()[1]
        logger.info(f"Listening on {self.host}:{self.port}")

    def serve(self, connection_handler: Callable[[Connection], None]) -> None:
        """
        Accept connections until stop() is called.

        Each connection is passed to ``connection_handler`` on a new daemon
        thread. The handler owns the connection and must close it.

        Raises:
            RuntimeError: If bind() was not called first.
            OSError: If accept() fails while the server is still running.
        """
        if self._stop_requested.is_set():
            self._cleanup()
            self._stopped.set()
            return
        if self._socket is None:
            raise RuntimeError("bind() must be called before serve()")

        self._running = True
        self._stopped.clear()

        try:
            self._accept_loop(connection_handler)
        finally:
            self._running = False
            self._cleanup()
            self._stopped.set()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]) -> None:
        # stop() may close and drop self._socket from another thread
        listener = self._socket
        while not self._stop_requested.is_set():
            try:
                client_socket, client_address = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                if self._stop_requested.is_set():
                    break
                raise

            if self._stop_requested.is_set():
                client_socket.close()
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address[:2],
                buffer_size=self.buffer_size,
                timeout=self.timeout,
                keep_alive_timeout=self.keep_alive_timeout,
                max_request_size=self.max_request_size,
            )

            worker = threading.Thread(
                target=connection_handler,
                args=(conn,),
                name=f"conn-{conn.id}",
                daemon=True,
            )
            worker.start()

    def stop(self) -> None:
        """
        Stop accepting new connections. Idempotent.

        The listening socket is closed right away, so connection attempts
        made after this call are refused by the OS.
        """
        if self._running:
            logger.info("Stopped accepting new connections")
        self._stop_requested.set()
        self._running = False
        self._cleanup()

    def _cleanup(self) -> None:
        with self._lock:
            listener, self._socket = self._socket, None
        if listener is None:
            return
        try:
            # Wakes a thread blocked in accept() on Linux
            listener.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        try:
            listener.close()
        except OSError:
            pass

    def close(self) -> None:
        """Release the listening socket without serving (e.g., startup aborted)."""
        self._stop_requested.set()
        self._running = False
        self._cleanup()

    def wait_stopped(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop has exited and the socket is closed."""
        return self._stopped.wait(timeout)
