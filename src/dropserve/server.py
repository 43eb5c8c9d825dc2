"""
=============================================================================
DROPSERVE SERVER
=============================================================================

Wires the pieces together for one run:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          DropServer                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ServeConfig ──► content_spec_for() ──► provider_for()              │
    │                                              │                       │
    │   ShutdownSignal ◄── TransferLimit           │                       │
    │         ▲                 ▲                  ▼                       │
    │         │                 └────────── DownloadHandler ◄── parse ◄─┐ │
    │         │                                    │                    │ │
    │         │                           ActiveTransfers               │ │
    │         │                                    ▲                    │ │
    │   ShutdownCoordinator ── wait_idle() ────────┘                    │ │
    │         │                                                         │ │
    │         └──► SocketServer.stop()     SocketServer ── thread/conn ─┘ │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Threads:
    main thread     run(): banner, then ShutdownCoordinator.run()
    accept thread   SocketServer.serve()
    one per client  _process_connection()

=============================================================================
"""

import logging
import threading
from typing import Optional
from urllib.parse import quote

from .config import ServeConfig
from .core.connection import Connection
from .core.socket_server import SocketServer
from .delivery.lifecycle import ActiveTransfers, ShutdownReason, ShutdownSignal, TransferLimit
from .delivery.provider import ContentSpec, content_spec_for, provider_for
from .handlers.download import DownloadHandler
from .http.request import HTTPParseError, RequestParser
from .http.response import error_response
from .http.status_codes import HTTPStatus
from .net import advertised_host
from .shutdown import ShutdownCoordinator, ShutdownReport


logger = logging.getLogger(__name__)


def setup_logging(log_level: str = "INFO") -> None:
    """Configure the root logger once; later calls only adjust the level."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    logging.getLogger("dropserve").setLevel(level)


class DropServer:
    """
    Serves one file or directory until the download limit is reached.

    Usage:
        server = DropServer(ServeConfig(target="./report.pdf", max_downloads=2))
        server.bind()            # OSError if the port is taken
        report = server.run()    # blocks until shutdown
    """

    def __init__(self, config: ServeConfig):
        """
        Build every component. Nothing touches the network yet.

        Raises:
            FileNotFoundError: If the target does not exist.
            ValueError: If the configuration is invalid.
        """
        config.validate()
        self.config = config

        self.spec: ContentSpec = content_spec_for(config.target, config.archive)
        self.provider = provider_for(self.spec, config.buffer_size)

        self.signal = ShutdownSignal()
        self.limit = TransferLimit(config.max_downloads, self.signal)
        self.active = ActiveTransfers()

        self.handler = DownloadHandler(
            provider=self.provider,
            limit=self.limit,
            active=self.active,
            server_name=config.server_name,
            log_format=config.log_format,
        )
        self._parser = RequestParser(max_request_size=config.max_request_size)

        self._socket_server = SocketServer(
            host=config.host,
            port=config.port,
            backlog=config.backlog,
            buffer_size=config.buffer_size,
            timeout=config.timeout,
            keep_alive_timeout=config.keep_alive_timeout,
            max_request_size=config.max_request_size,
        )
        self._coordinator = ShutdownCoordinator(
            shutdown_signal=self.signal,
            active=self.active,
            stop_accepting=self._socket_server.stop,
            drain_timeout=config.drain_timeout,
        )

        self._bound = False
        self._accept_thread: Optional[threading.Thread] = None

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def port(self) -> int:
        return self._socket_server.address[1]

    @property
    def url(self) -> str:
        """Download URL to hand to the other side."""
        host = self.config.advertise_host or advertised_host(self.config.host)
        if ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self.port}/{quote(self.provider.filename())}"

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def bind(self) -> None:
        """
        Reserve the listening address.

        Raises:
            OSError: If the address cannot be bound.
        """
        if not self._bound:
            self._socket_server.bind()
            self._bound = True

    def start(self) -> None:
        """Bind if needed and start the accept thread. Returns immediately."""
        self.bind()
        self._accept_thread = threading.Thread(
            target=self._serve, name="dropserve-accept", daemon=True
        )
        self._accept_thread.start()

    def run(self) -> ShutdownReport:
        """
        Serve until shutdown (blocking).

        Returns:
            ShutdownReport describing what stopped the server and whether
            the drain finished in time.
        """
        setup_logging(self.config.log_level)
        self.start()

        logger.info(f"Serving {self.spec.source} as {self.provider.filename()}")
        self._print_startup_banner()

        self._coordinator.install_signal_handlers()
        try:
            report = self._coordinator.run()
        finally:
            self._coordinator.restore_signal_handlers()

        if self._accept_thread is not None:
            self._accept_thread.join(timeout=5.0)

        return report

    def stop(self) -> None:
        """Request shutdown from code (same path as Ctrl+C)."""
        self.signal.trigger(ShutdownReason.INTERRUPT, "stop requested")

    def close(self) -> None:
        """Release the port without serving."""
        self._socket_server.close()

    def _serve(self) -> None:
        try:
            self._socket_server.serve(self._process_connection)
        except Exception as e:
            logger.error(f"Server error: {e}")
            self.signal.trigger(ShutdownReason.SERVER_ERROR, str(e))

    def _print_startup_banner(self) -> None:
        """Operator-facing summary, printed to stdout."""
        print()
        print(f"Serving {self.spec.source}")
        print(f"URL: {self.url}")
        remaining = self.limit.remaining()
        if remaining is None:
            print("Downloads: unlimited")
        else:
            print(f"Downloads: {remaining} remaining")
        print("Press Ctrl+C to stop")
        print()

    # =========================================================================
    # REQUEST HANDLING
    # =========================================================================

    def _process_connection(self, conn: Connection) -> None:
        """
        Serve requests on one connection (runs on the connection's thread).

        Keeps the connection open between requests when both sides allow
        it. Once shutdown has started no further request is served. A
        connection waiting for its next request is closed, and a request
        read after the signal is answered 503.
        """
        with conn:
            while True:
                if self.signal.is_set():
                    break

                try:
                    raw_request = conn.read_request()
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                    break
                except ValueError as e:
                    logger.warning(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.CONTENT_TOO_LARGE)
                    break
                except OSError as e:
                    logger.debug(f"[{conn.id}] Read failed: {e}")
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.debug(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                    self._send_error(conn, _status_for(e.status_code))
                    break

                if self.signal.is_set():
                    logger.debug(f"[{conn.id}] Refused {request.path}: shutting down")
                    self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
                    break

                logger.debug(f"[{conn.id}] {request.method} {request.path} {request.version}")

                try:
                    keep_open = self.handler.handle(request, conn)
                except Exception as e:
                    logger.exception(f"[{conn.id}] Handler error: {e}")
                    break

                if not keep_open:
                    break
                conn.set_keep_alive()

    def _send_error(self, conn: Connection, status: HTTPStatus) -> None:
        conn.send_response(error_response(status).to_bytes(self.config.server_name))


def _status_for(code: int) -> HTTPStatus:
    try:
        return HTTPStatus(code)
    except ValueError:
        return HTTPStatus.BAD_REQUEST


def create_server(config: Optional[ServeConfig] = None, **overrides) -> DropServer:
    """
    Build a DropServer from a config and/or keyword overrides.

        server = create_server(target="./dist", archive_kind="zip", max_downloads=0)
    """
    if config is None:
        config = ServeConfig(**overrides)
    else:
        for name, value in overrides.items():
            setattr(config, name, value)
    return DropServer(config)


# =============================================================================
# MODULE SUMMARY
# =============================================================================
#
# DropServer orchestrates one run:
#
# 1. Validate config, describe the content, pick the provider
# 2. Bind (startup errors surface here)
# 3. Accept thread + one thread per connection
# 4. Coordinator waits for limit / Ctrl+C / server error, then drains
#
# KEY DESIGN DECISIONS:
# - Counters live on the instance, handed to the handler
# - No thread pool: every client streams independently
# - Shutdown is never an error, a timed-out drain included
# =============================================================================
