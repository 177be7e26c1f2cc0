"""Background sampling loop for sysmon."""

import logging
import threading
import time

from sysmon.alerts import AlertLog, evaluate
from sysmon.counters import CounterReader
from sysmon.history import History
from sysmon.models import Snapshot, SystemInfo
from sysmon.sampler import Sampler
from sysmon.settings import Settings
from sysmon.store import SnapshotStore

logger = logging.getLogger(__name__)

# Lets CPU counters establish a baseline before the first real sample
WARMUP_DELAY = 0.5
# Floor for the refresh interval; a zero interval must not spin the loop
MIN_INTERVAL = 0.05


def sleep_delay(interval: float, overhead: float) -> float:
    """Seconds left of the interval after a tick that took overhead seconds, never negative."""
    return max(max(interval, MIN_INTERVAL) - overhead, 0.0)


class SystemMonitor:
    """
    System monitor that samples the host on a fixed interval.

    Runs in a separate daemon thread. It is the only owner of the sampler,
    the history series and the alert log, and publishes immutable snapshots
    to a SnapshotStore. A tick that fails is logged and skipped.
    """

    def __init__(
        self,
        reader: CounterReader,
        store: SnapshotStore,
        settings: Settings | None = None,
        warmup: float = WARMUP_DELAY,
    ) -> None:
        """
        Initialize the SystemMonitor.

        Args:
            reader: Source of raw OS counters.
            store: Where snapshots are published.
            settings: Initial settings. Replace later with update_settings().
            warmup: Delay between priming the counters and the first sample.
        """
        self._reader = reader
        self._store = store
        self._settings = settings or Settings()
        self._warmup = warmup
        self._sampler = Sampler(reader, process_count=self._settings.process_count)
        self._history = History(self._settings.history_capacity)
        self._alert_log = AlertLog(self._settings.alert_log_size)
        self._sequence = store.sequence
        self._system_info = SystemInfo.unknown()

        self._stop_event = threading.Event()
        self._reset_requested = threading.Event()
        self._info_requested = threading.Event()
        self._info_requested.set()
        self._thread: threading.Thread | None = None

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def settings(self) -> Settings:
        """Get the settings used for the next tick."""
        return self._settings

    def update_settings(self, settings: Settings) -> None:
        """Replace the settings; takes effect on the next tick."""
        self._settings = settings

    @property
    def is_running(self) -> bool:
        """Check if the monitor thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the monitoring thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._poll_loop,
            daemon=True,
            name="SystemMonitor",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the monitoring thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def reset_statistics(self) -> None:
        """Ask the worker to clear history and the alert log on its next tick."""
        self._reset_requested.set()

    def refresh_system_info(self) -> None:
        """Ask the worker to re-read static host facts on its next tick."""
        self._info_requested.set()

    def _poll_loop(self) -> None:
        """Main polling loop running in the background thread."""
        self._reader.refresh()
        if self._stop_event.wait(timeout=self._warmup):
            return

        while not self._stop_event.is_set():
            started = time.monotonic()
            try:
                self.tick()
            except Exception:
                logger.exception("Sampling tick failed; skipping publish")

            overhead = time.monotonic() - started
            delay = sleep_delay(self._settings.refresh_interval_seconds, overhead)
            self._stop_event.wait(timeout=delay)

    def tick(self) -> Snapshot:
        """Take one sample, update history and alerts, and publish."""
        settings = self._settings
        self._apply_settings(settings)

        if self._reset_requested.is_set():
            self._reset_requested.clear()
            self._history.clear()
            self._alert_log.clear()
            logger.info("Statistics reset")

        if self._info_requested.is_set():
            self._info_requested.clear()
            self._system_info = self._read_system_info()

        sample = self._sampler.sample()
        self._history.record(sample)
        alerts = evaluate(sample, settings.thresholds)
        self._alert_log.add(alerts)
        for alert in alerts:
            logger.debug("Alert %s: %s", alert.kind.value, alert.message)

        self._sequence += 1
        snapshot = Snapshot(
            sequence=self._sequence,
            sample=sample,
            history=self._history.snapshot(),
            alerts=tuple(alerts),
            alert_log=self._alert_log.entries(),
            system_info=self._system_info,
        )
        self._store.publish(snapshot)
        return snapshot

    def _apply_settings(self, settings: Settings) -> None:
        self._sampler.process_count = settings.process_count
        if settings.history_capacity != self._history.capacity:
            self._history = self._history.resize(settings.history_capacity)
        if settings.alert_log_size != self._alert_log.size:
            resized = AlertLog(settings.alert_log_size)
            resized.add(list(self._alert_log.entries()))
            self._alert_log = resized

    def _read_system_info(self) -> SystemInfo:
        try:
            return self._reader.system_info()
        except Exception:
            logger.exception("Reading system info failed")
            return SystemInfo.unknown()
