"""
=============================================================================
TRANSFER LIFECYCLE CONTROLLER
=============================================================================

Tracks how many downloads are in flight and how many have completed, and
raises a one-shot shutdown signal once the configured limit is reached.

=============================================================================
THE THREE PIECES OF SHARED STATE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                   LIFECYCLE STATE (per server)                      │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ActiveTransfers        TransferLimit          ShutdownSignal      │
    │   ───────────────        ─────────────          ──────────────      │
    │   count of bodies        max + completed        one-shot event      │
    │   being written          (success only)         + first reason      │
    │        │                      │                       ▲             │
    │        │                      └── reached max ────────┘             │
    │        │                                              │             │
    │        └──── wait_idle() ◄──── ShutdownCoordinator ───┘             │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every connection thread mutates these objects concurrently. The shutdown
coordinator is the single consumer: it waits on the signal, then waits for
the active count to drain.

=============================================================================
WHY COUNT AFTER SUCCESS?
=============================================================================

A client that disconnects halfway does not consume a slot. The download can
simply be retried by a new client without exhausting the limit.

When several transfers finish at the same moment, ``completed`` may end up
above ``max``. Transfers that were already accepted are never rejected; the
signal just fires (once) when the count is at or past the limit.

=============================================================================
"""

import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional


logger = logging.getLogger(__name__)


class ShutdownReason(Enum):
    """What caused the server to stop."""
    LIMIT_REACHED = "download limit reached"
    INTERRUPT = "interrupted"
    SERVER_ERROR = "server error"


class ShutdownSignal:
    """
    One-shot, non-blocking shutdown notification.

    Any thread may call ``trigger()``; only the first call wins and records
    its reason. Later calls are no-ops. Raising never blocks, even when no
    one is waiting yet.

    Usage:
        signal = ShutdownSignal()
        signal.trigger(ShutdownReason.INTERRUPT)   # True
        signal.trigger(ShutdownReason.LIMIT_REACHED)  # False, already set
        signal.reason                               # ShutdownReason.INTERRUPT
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: Optional[ShutdownReason] = None
        self._detail: Optional[str] = None

    def trigger(self, reason: ShutdownReason, detail: Optional[str] = None) -> bool:
        """
        Raise the signal.

        Args:
            reason: Why shutdown was requested.
            detail: Optional human-readable context (e.g., the server error).

        Returns:
            True if this call raised the signal, False if it was already set.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._reason = reason
            self._detail = detail
            self._event.set()

        logger.debug(f"Shutdown signal raised: {reason.value}")
        return True

    def is_set(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the signal is raised. Returns False on timeout."""
        return self._event.wait(timeout)

    @property
    def reason(self) -> Optional[ShutdownReason]:
        return self._reason

    @property
    def detail(self) -> Optional[str]:
        return self._detail


class TransferLimit:
    """
    Completion counter with an optional upper bound.

    =========================================================================
    SEMANTICS
    =========================================================================

        max_transfers == 0   unlimited, the signal is never raised
        max_transfers  > 0   after the max-th success the signal is raised

    The increment and the compare happen under one lock, so concurrent
    completions never lose an update.

    =========================================================================
    """

    def __init__(self, max_transfers: int, signal: ShutdownSignal):
        if max_transfers < 0:
            raise ValueError(f"max_transfers must be >= 0, got {max_transfers}")

        self.max_transfers = max_transfers
        self._signal = signal
        self._completed = 0
        self._lock = threading.Lock()

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    @property
    def unlimited(self) -> bool:
        return self.max_transfers == 0

    def remaining(self) -> Optional[int]:
        """Slots left before shutdown, clamped at zero. None when unlimited."""
        if self.unlimited:
            return None
        with self._lock:
            return max(self.max_transfers - self._completed, 0)

    def record_completion(self) -> Optional[int]:
        """
        Count one fully successful transfer.

        Must be called exactly once per transfer whose body was written
        without error, and never for failed or interrupted transfers.

        Returns:
            Remaining allowed transfers (clamped at zero), or None when the
            limit is unlimited.
        """
        with self._lock:
            self._completed += 1
            completed = self._completed

        if self.unlimited:
            return None

        remaining = self.max_transfers - completed
        if remaining <= 0:
            self._signal.trigger(
                ShutdownReason.LIMIT_REACHED,
                f"{completed} of {self.max_transfers} downloads completed",
            )

        return max(remaining, 0)


class ActiveTransfers:
    """
    Count of transfers currently writing a response.

    Backed by a Condition so the shutdown coordinator can block until the
    count reaches zero. The count can never go negative: an unmatched
    ``end()`` raises RuntimeError.

    Usage:
        with active.track():
            stream_the_body()
        # decremented here, whatever happened inside
    """

    def __init__(self):
        self._count = 0
        self._condition = threading.Condition()

    @property
    def count(self) -> int:
        with self._condition:
            return self._count

    def begin(self) -> None:
        with self._condition:
            self._count += 1

    def end(self) -> None:
        with self._condition:
            if self._count == 0:
                raise RuntimeError("end() called with no active transfer")
            self._count -= 1
            if self._count == 0:
                self._condition.notify_all()

    @contextmanager
    def track(self) -> Iterator[None]:
        """Mark one transfer as active for the duration of the block."""
        self.begin()
        try:
            yield
        finally:
            self.end()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no transfer is active.

        Args:
            timeout: Maximum seconds to wait. None = wait forever.

        Returns:
            True if the count reached zero, False if the timeout elapsed.
        """
        with self._condition:
            return self._condition.wait_for(lambda: self._count == 0, timeout)
