"""Test the one-shot signal and telemetry primitives."""

import threading

from sshfwd.core.telemetry import Telemetry
from sshfwd.domain.tunnel import OneShotSignal


class TestOneShotSignal:
    """Test OneShotSignal."""

    def test_fires_once(self) -> None:
        signal = OneShotSignal("shutdown")

        assert signal.fire() is True
        assert signal.fire() is False
        assert signal.is_fired()

    def test_wait_times_out(self) -> None:
        assert OneShotSignal().wait(timeout=0.01) is False

    def test_releases_all_waiters(self) -> None:
        signal = OneShotSignal()
        released = []

        def waiter() -> None:
            released.append(signal.wait(timeout=5))

        threads = [threading.Thread(target=waiter) for _ in range(4)]
        for thread in threads:
            thread.start()
        signal.fire()
        for thread in threads:
            thread.join(5)

        assert released == [True] * 4

    def test_concurrent_fire_reports_single_winner(self) -> None:
        signal = OneShotSignal()
        results = []
        barrier = threading.Barrier(8)

        def fire() -> None:
            barrier.wait()
            results.append(signal.fire())

        threads = [threading.Thread(target=fire) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(5)

        assert results.count(True) == 1


class TestTelemetry:
    """Test Telemetry."""

    def test_records_and_filters_events(self) -> None:
        telemetry = Telemetry()
        telemetry.record_event("connection.accepted", {"peer": "a"})
        telemetry.record_event("connection.closed")

        assert len(telemetry.get_events()) == 2
        assert telemetry.get_events("connection.accepted")[0].metadata == {"peer": "a"}

    def test_metrics_and_clear(self) -> None:
        telemetry = Telemetry()
        telemetry.record_metric("connection.bytes", 10, {"direction": "local->remote"})

        assert telemetry.get_metrics()[0].value == 10
        telemetry.clear()
        assert telemetry.get_metrics() == []
        assert telemetry.get_events() == []
