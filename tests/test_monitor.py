"""Tests for the SystemMonitor class."""

import dataclasses
import time

import pytest

from sysmon.counters import InterfaceCounters, PsutilCounterReader
from sysmon.gpu import UnavailableGpu
from sysmon.models import AlertKind, ProcessInfo, Snapshot
from sysmon.monitor import MIN_INTERVAL, WARMUP_DELAY, SystemMonitor, sleep_delay
from sysmon.settings import Settings
from sysmon.store import SnapshotStore

FAST = Settings(refresh_interval_seconds=1.0)


def fast_monitor(reader, settings: Settings = FAST) -> SystemMonitor:
    monitor = SystemMonitor(reader, SnapshotStore(), settings, warmup=0.0)
    # Below the configurable minimum so the thread tests run quickly
    monitor.update_settings(dataclasses.replace(settings, refresh_interval_seconds=0.05))
    return monitor


class TestSystemMonitor:
    """Tests for SystemMonitor class."""

    def test_monitor_creation(self, reader):
        """Test SystemMonitor can be instantiated."""
        monitor = SystemMonitor(reader, SnapshotStore())

        assert monitor.settings == Settings()
        assert not monitor.is_running
        assert monitor.store.read().sequence == 0

    def test_default_warmup(self):
        assert WARMUP_DELAY == 0.5

    def test_monitor_start_stop(self, reader):
        """Test SystemMonitor can be started and stopped."""
        monitor = fast_monitor(reader)

        assert not monitor.is_running

        monitor.start()
        assert monitor.is_running

        monitor.stop()
        assert not monitor.is_running

    def test_monitor_start_idempotent(self, reader):
        """Test starting an already running monitor is safe."""
        monitor = fast_monitor(reader)

        monitor.start()
        thread1 = monitor._thread

        monitor.start()  # Should not create a new thread
        thread2 = monitor._thread

        assert thread1 is thread2
        monitor.stop()

    def test_stop_during_warmup(self, reader):
        monitor = SystemMonitor(reader, SnapshotStore(), FAST, warmup=30.0)
        monitor.start()
        monitor.stop(timeout=2.0)

        assert not monitor.is_running
        assert monitor.store.read().sequence == 0

    def test_daemon_thread(self, reader):
        """Test monitor thread is a daemon thread."""
        monitor = fast_monitor(reader)

        monitor.start()

        try:
            assert monitor._thread is not None
            assert monitor._thread.daemon is True
            assert monitor._thread.name == "SystemMonitor"
        finally:
            monitor.stop()

    def test_monitor_publishes_snapshots(self, reader):
        """Test SystemMonitor publishes increasing snapshots to the store."""
        monitor = fast_monitor(reader)
        monitor.start()

        try:
            first = monitor.store.wait_for(0, timeout=2.0)
            second = monitor.store.wait_for(first.sequence, timeout=2.0)
        finally:
            monitor.stop()

        assert isinstance(first, Snapshot)
        assert first.sample is not None
        assert second.sequence > first.sequence
        assert second.sample.timestamp >= first.sample.timestamp
        assert first.system_info.hostname == "testhost"

    def test_monitor_survives_failing_tick(self, reader):
        """Test monitor handles errors gracefully and continues running."""
        calls = {"count": 0}

        def flaky_refresh():
            calls["count"] += 1
            # First call primes the counters; the second is the first tick
            if calls["count"] == 2:
                raise RuntimeError("transient failure")

        reader.refresh = flaky_refresh
        monitor = fast_monitor(reader)
        monitor.start()

        try:
            snapshot = monitor.store.wait_for(0, timeout=2.0)
            assert snapshot is not None
            assert monitor.is_running
        finally:
            monitor.stop()

        assert snapshot.sequence == 1
        assert calls["count"] >= 3

    def test_zero_interval_does_not_spin(self, reader):
        monitor = SystemMonitor(reader, SnapshotStore(), warmup=0.0)
        monitor.update_settings(dataclasses.replace(monitor.settings, refresh_interval_seconds=0.0))
        monitor.start()
        time.sleep(0.5)
        monitor.stop()

        # One priming refresh plus at most one tick per MIN_INTERVAL
        assert reader.refresh_count <= 0.5 / MIN_INTERVAL + 3


class TestSleepDelay:
    """Tests for the time slept between ticks."""

    def test_remaining_interval(self):
        assert sleep_delay(2.0, 0.25) == pytest.approx(1.75)

    def test_overhead_longer_than_interval(self):
        assert sleep_delay(1.0, 1.5) == 0.0

    def test_overhead_equal_to_interval(self):
        assert sleep_delay(2.0, 2.0) == 0.0

    def test_zero_interval_uses_floor(self):
        assert sleep_delay(0.0, 0.0) == MIN_INTERVAL
        assert sleep_delay(-3.0, 0.01) == pytest.approx(MIN_INTERVAL - 0.01)


class TestTick:
    """Tests for a single tick, run on the calling thread."""

    def test_tick_publishes(self, reader):
        monitor = SystemMonitor(reader, SnapshotStore())
        snapshot = monitor.tick()

        assert monitor.store.read() is snapshot
        assert snapshot.sequence == 1
        assert len(snapshot.history.cpu) == 1

    def test_history_grows_and_is_bounded(self, reader):
        monitor = SystemMonitor(reader, SnapshotStore(), Settings(history_capacity=5))
        for _ in range(8):
            snapshot = monitor.tick()

        assert len(snapshot.history.cpu) == 5
        assert len(snapshot.history.memory) == 5
        assert snapshot.sequence == 8

    def test_alerts_evaluated_and_logged(self, reader):
        reader.cores = [99.0, 99.0]
        monitor = SystemMonitor(reader, SnapshotStore(), Settings(alert_log_size=3))

        for _ in range(5):
            snapshot = monitor.tick()

        assert [a.kind for a in snapshot.alerts] == [AlertKind.CPU_HIGH]
        assert len(snapshot.alert_log) == 3

    def test_notifications_disabled(self, reader):
        reader.cores = [99.0, 99.0]
        monitor = SystemMonitor(reader, SnapshotStore(), Settings(notifications_enabled=False))
        snapshot = monitor.tick()

        assert snapshot.alerts == ()
        assert snapshot.alert_log == ()

    def test_settings_change_applies_next_tick(self, reader):
        monitor = SystemMonitor(reader, SnapshotStore())
        reader.cores = [95.0]
        assert monitor.tick().alerts != ()

        monitor.update_settings(dataclasses.replace(monitor.settings, cpu_threshold=99.0))
        assert monitor.tick().alerts == ()

    def test_process_count_from_settings(self, reader):
        reader.process_list = [
            ProcessInfo(pid=i, name="p", cpu_percent=0.0, memory=i, status="running")
            for i in range(1, 30)
        ]
        monitor = SystemMonitor(reader, SnapshotStore(), Settings(process_count=4))
        assert len(monitor.tick().sample.processes) == 4

    def test_reset_statistics(self, reader):
        reader.cores = [99.0]
        monitor = SystemMonitor(reader, SnapshotStore())
        for _ in range(3):
            monitor.tick()

        monitor.reset_statistics()
        snapshot = monitor.tick()

        assert len(snapshot.history.cpu) == 1
        assert len(snapshot.alert_log) == 1

    def test_refresh_system_info(self, reader):
        monitor = SystemMonitor(reader, SnapshotStore())
        assert monitor.tick().system_info.hostname == "testhost"

        reader.info = dataclasses.replace(reader.info, hostname="renamed")
        assert monitor.tick().system_info.hostname == "testhost"

        monitor.refresh_system_info()
        assert monitor.tick().system_info.hostname == "renamed"

    def test_published_snapshot_unaffected_by_later_ticks(self, reader):
        monitor = SystemMonitor(reader, SnapshotStore())
        first = monitor.tick()
        history_before = first.history.cpu
        monitor.tick()

        assert first.history.cpu == history_before
        assert len(first.history.cpu) == 1

    def test_network_rates_flow_into_history(self, reader):
        reader.interfaces = {"eth0": InterfaceCounters(0, 0)}
        monitor = SystemMonitor(reader, SnapshotStore())
        snapshot = monitor.tick()
        assert snapshot.history.net_down[0].value == 0.0


def test_monitor_with_real_counters():
    """The monitor produces a sample from the real host."""
    reader = PsutilCounterReader(gpu=UnavailableGpu())
    monitor = SystemMonitor(reader, SnapshotStore(), warmup=0.1)
    monitor.start()

    try:
        snapshot = monitor.store.wait_for(0, timeout=5.0)
    finally:
        monitor.stop()
        reader.close()

    assert snapshot is not None
    assert snapshot.sample.memory.total > 0
    assert len(snapshot.sample.processes) > 0
    assert snapshot.sample.gpu is None
