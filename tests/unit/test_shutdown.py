"""
Unit tests for ShutdownCoordinator.
"""

import threading
import time

from dropserve.delivery.lifecycle import ActiveTransfers, ShutdownReason, ShutdownSignal
from dropserve.shutdown import ShutdownCoordinator, ShutdownReport


class StopRecorder:
    """Stands in for SocketServer.stop()."""

    def __init__(self):
        self.calls = 0

    def __call__(self):
        self.calls += 1


def make_coordinator(drain_timeout: float = 5.0):
    signal = ShutdownSignal()
    active = ActiveTransfers()
    stop = StopRecorder()
    coordinator = ShutdownCoordinator(
        shutdown_signal=signal,
        active=active,
        stop_accepting=stop,
        drain_timeout=drain_timeout,
        poll_interval=0.02,
    )
    return coordinator, signal, active, stop


class TestShutdownCoordinator:
    """Tests for the stop-then-drain sequence."""

    def test_clean_shutdown_when_idle(self):
        """Test an idle server shuts down cleanly and stops accepting."""
        coordinator, signal, _, stop = make_coordinator()
        signal.trigger(ShutdownReason.LIMIT_REACHED, "1 of 1 downloads completed")

        report = coordinator.run()

        assert report.reason is ShutdownReason.LIMIT_REACHED
        assert report.clean is True
        assert report.abandoned == 0
        assert stop.calls == 1

    def test_drain_waits_for_active(self):
        """Test shutdown waits for an in-flight transfer to finish."""
        coordinator, signal, active, _ = make_coordinator()
        active.begin()
        signal.trigger(ShutdownReason.INTERRUPT, "SIGINT")
        threading.Timer(0.1, active.end).start()

        report = coordinator.shutdown()

        assert report.clean is True
        assert report.drain_seconds >= 0.05

    def test_drain_timeout(self):
        """Test a stuck transfer is abandoned after the drain timeout."""
        coordinator, signal, active, _ = make_coordinator(drain_timeout=0.2)
        active.begin()
        signal.trigger(ShutdownReason.INTERRUPT)

        started = time.monotonic()
        report = coordinator.shutdown()
        elapsed = time.monotonic() - started

        assert report.clean is False
        assert report.abandoned == 1
        assert 0.15 <= elapsed < 2.0

    def test_shutdown_runs_once(self):
        """Test repeated shutdown calls return the first report."""
        coordinator, signal, _, stop = make_coordinator()
        signal.trigger(ShutdownReason.SERVER_ERROR, "accept failed")

        first = coordinator.shutdown()
        second = coordinator.shutdown()

        assert first is second
        assert stop.calls == 1
        assert first.reason is ShutdownReason.SERVER_ERROR

    def test_wait_returns_reason(self):
        """Test wait() blocks until the signal is raised elsewhere."""
        coordinator, signal, _, _ = make_coordinator()
        threading.Timer(0.05, signal.trigger, args=(ShutdownReason.LIMIT_REACHED,)).start()

        assert coordinator.wait() is ShutdownReason.LIMIT_REACHED

    def test_no_signal_handlers_off_main_thread(self):
        """Test handler installation is skipped outside the main thread."""
        coordinator, _, _, _ = make_coordinator()
        result = []

        thread = threading.Thread(target=lambda: result.append(coordinator.install_signal_handlers()))
        thread.start()
        thread.join()

        assert result == [False]


class TestShutdownReport:
    """Tests for report wording."""

    def test_describe_clean(self):
        """Test the clean summary."""
        report = ShutdownReport(ShutdownReason.LIMIT_REACHED, "1 of 1 downloads completed", clean=True)
        assert report.describe() == (
            "Shutdown after download limit reached (1 of 1 downloads completed): "
            "all transfers finished"
        )

    def test_describe_forced(self):
        """Test the forced summary mentions abandoned transfers."""
        report = ShutdownReport(ShutdownReason.INTERRUPT, None, clean=False, abandoned=2)
        assert "2 transfer(s) abandoned" in report.describe()
