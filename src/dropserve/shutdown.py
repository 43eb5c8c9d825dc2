"""
=============================================================================
SHUTDOWN COORDINATION
=============================================================================

Three independent things can end a run:

    ┌──────────────────────┬────────────────────────────────────────────┐
    │  Trigger             │  Raised by                                 │
    ├──────────────────────┼────────────────────────────────────────────┤
    │  LIMIT_REACHED       │  TransferLimit after the N-th download     │
    │  INTERRUPT           │  SIGINT (Ctrl+C) / SIGTERM handler         │
    │  SERVER_ERROR        │  accept loop dying unexpectedly            │
    └──────────────────────┴────────────────────────────────────────────┘

All of them raise the same one-shot ShutdownSignal; the first one wins.
The coordinator waits for it, then shuts down in two phases:

    1. stop accepting      new clients are refused immediately
    2. drain               wait for active transfers to reach zero,
                           at most `drain_timeout` seconds (30 by default)

    signal ──► stop_accepting() ──► wait_idle(30s) ──┬── 0 active ──► clean
                                                     └── timeout  ──► forced

Both outcomes are a normal exit. A forced shutdown abandons the transfers
still running; their clients see a truncated download.

A second Ctrl+C during the drain skips the rest of the wait.

=============================================================================
"""

import logging
import signal
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .delivery.lifecycle import ActiveTransfers, ShutdownReason, ShutdownSignal


logger = logging.getLogger(__name__)


DEFAULT_DRAIN_TIMEOUT = 30.0


@dataclass
class ShutdownReport:
    """Outcome of a shutdown, for the final log lines."""
    reason: ShutdownReason
    detail: Optional[str]
    clean: bool
    abandoned: int = 0
    drain_seconds: float = 0.0

    def describe(self) -> str:
        cause = self.reason.value
        if self.detail:
            cause += f" ({self.detail})"
        if self.clean:
            return f"Shutdown after {cause}: all transfers finished"
        return (
            f"Shutdown after {cause}: drain timed out, "
            f"{self.abandoned} transfer(s) abandoned"
        )


class ShutdownCoordinator:
    """
    Waits for the shutdown signal, then stops and drains the server.

    Usage:
        coordinator = ShutdownCoordinator(signal, active, socket_server.stop)
        coordinator.install_signal_handlers()
        try:
            report = coordinator.run()
        finally:
            coordinator.restore_signal_handlers()
    """

    def __init__(
        self,
        shutdown_signal: ShutdownSignal,
        active: ActiveTransfers,
        stop_accepting: Callable[[], None],
        drain_timeout: float = DEFAULT_DRAIN_TIMEOUT,
        poll_interval: float = 0.25,
    ):
        self.signal = shutdown_signal
        self.active = active
        self.stop_accepting = stop_accepting
        self.drain_timeout = drain_timeout
        self.poll_interval = poll_interval

        self._force = threading.Event()
        self._original_handlers: dict = {}
        self._report: Optional[ShutdownReport] = None
        self._lock = threading.Lock()

    # =========================================================================
    # OS SIGNALS
    # =========================================================================

    def install_signal_handlers(self) -> bool:
        """
        Route SIGINT and SIGTERM into the shutdown signal.

        Python only allows this from the main thread. Elsewhere (tests,
        embedding) nothing is installed and False is returned.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, OS signal handlers not installed")
            return False

        def handler(signum, frame):
            name = signal.Signals(signum).name
            if not self.signal.trigger(ShutdownReason.INTERRUPT, name):
                logger.warning(f"Received {name} again, skipping drain")
                self._force.set()
            else:
                logger.info(f"Received {name}, shutting down...")

        for sig in (signal.SIGINT, signal.SIGTERM):
            self._original_handlers[sig] = signal.signal(sig, handler)
        return True

    def restore_signal_handlers(self) -> None:
        for sig, previous in self._original_handlers.items():
            signal.signal(sig, previous)
        self._original_handlers.clear()

    # =========================================================================
    # WAIT + SHUTDOWN
    # =========================================================================

    def wait(self) -> ShutdownReason:
        """
        Block until any trigger raises the signal.

        Waits in short slices so the main thread keeps running OS signal
        handlers.
        """
        while not self.signal.wait(self.poll_interval):
            pass
        return self.signal.reason

    def shutdown(self) -> ShutdownReport:
        """
        Stop accepting, then drain. Runs once; later calls return the
        first report.
        """
        with self._lock:
            if self._report is not None:
                return self._report

            reason = self.signal.reason or ShutdownReason.INTERRUPT
            detail = self.signal.detail

            self.stop_accepting()

            in_flight = self.active.count
            if in_flight:
                logger.info(
                    f"Waiting up to {self.drain_timeout:.0f}s for "
                    f"{in_flight} active transfer(s)"
                )

            started = time.monotonic()
            clean = self._drain()
            elapsed = time.monotonic() - started

            self._report = ShutdownReport(
                reason=reason,
                detail=detail,
                clean=clean,
                abandoned=0 if clean else self.active.count,
                drain_seconds=elapsed,
            )

            if clean:
                logger.info(self._report.describe())
            else:
                logger.warning(self._report.describe())

            return self._report

    def run(self) -> ShutdownReport:
        self.wait()
        return self.shutdown()

    def _drain(self) -> bool:
        deadline = time.monotonic() + self.drain_timeout
        while True:
            left = deadline - time.monotonic()
            if left <= 0:
                return self.active.count == 0
            if self.active.wait_idle(min(self.poll_interval, left)):
                return True
            if self._force.is_set():
                return False
