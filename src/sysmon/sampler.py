"""Turns raw counter readings into Samples."""

import logging
import time
from collections.abc import Callable
from datetime import datetime

import psutil

from sysmon.counters import CounterReader, InterfaceCounters
from sysmon.metrics import counter_delta, rate, top_processes, usage_percent
from sysmon.models import (
    CoreUsage,
    DiskInfo,
    GpuInfo,
    MemoryInfo,
    NetworkInterface,
    ProcessInfo,
    Sample,
)

logger = logging.getLogger(__name__)

DEFAULT_PROCESS_COUNT = 15
WALL_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Failures of a single counter read; each empties only its own field
READ_ERRORS = (OSError, psutil.Error)


class Sampler:
    """
    Produces one Sample per call from a CounterReader.

    Keeps the previous network counters and their read time so that
    cumulative byte counts can be turned into rates. A field that cannot
    be read is left empty; sample() itself does not fail on partial reads.
    """

    def __init__(
        self,
        reader: CounterReader,
        process_count: int = DEFAULT_PROCESS_COUNT,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._reader = reader
        self.process_count = process_count
        self._clock = clock
        self._wall_clock = wall_clock
        self._started = clock()
        self._last_time: float | None = None
        self._last_network: dict[str, InterfaceCounters] = {}

    def sample(self) -> Sample:
        """Read every counter once and build a Sample."""
        self._reader.refresh()
        now = self._clock()
        elapsed = now - self._last_time if self._last_time is not None else 0.0

        cores = self._read_cores()
        cpu_usage = sum(c.usage_percent for c in cores) / len(cores) if cores else 0.0

        sample = Sample(
            timestamp=now - self._started,
            wall_time=self._wall_clock().strftime(WALL_TIME_FORMAT),
            memory=self._read_memory(),
            cpu_usage_percent=cpu_usage,
            cores=cores,
            gpu=self._read_gpu(),
            processes=self._read_processes(),
            disks=self._read_disks(),
            network=self._read_network(elapsed),
        )
        self._last_time = now
        return sample

    def reset(self) -> None:
        """Forget previous network counters; the next sample reports zero rates."""
        self._last_time = None
        self._last_network = {}

    def _read_memory(self) -> MemoryInfo:
        try:
            total, used = self._reader.memory()
        except READ_ERRORS as exc:
            logger.debug("Memory read failed: %s", exc)
            return MemoryInfo(total=0, used=0, percentage=0.0)
        used = min(used, total)
        return MemoryInfo(total=total, used=used, percentage=usage_percent(used, total))

    def _read_cores(self) -> tuple[CoreUsage, ...]:
        try:
            usages = self._reader.cpu_usage()
        except READ_ERRORS as exc:
            logger.debug("CPU read failed: %s", exc)
            return ()
        return tuple(CoreUsage(core_id=i, usage_percent=usage) for i, usage in enumerate(usages))

    def _read_gpu(self) -> GpuInfo | None:
        try:
            return self._reader.gpu()
        except Exception:
            logger.debug("GPU read failed", exc_info=True)
            return None

    def _read_processes(self) -> tuple[ProcessInfo, ...]:
        try:
            processes = list(self._reader.processes())
        except READ_ERRORS as exc:
            logger.debug("Process enumeration failed: %s", exc)
            return ()
        return tuple(top_processes(processes, self.process_count))

    def _read_disks(self) -> tuple[DiskInfo, ...]:
        disks = []
        try:
            for space in self._reader.disks():
                available = min(space.available, space.total)
                disks.append(
                    DiskInfo(
                        name=space.name,
                        mount_point=space.mount_point,
                        filesystem=space.filesystem,
                        total=space.total,
                        available=available,
                        usage_percent=usage_percent(space.total - available, space.total),
                    )
                )
        except READ_ERRORS as exc:
            logger.debug("Disk enumeration failed: %s", exc)
            return ()
        return tuple(disks)

    def _read_network(self, elapsed: float) -> tuple[NetworkInterface, ...]:
        try:
            current = self._reader.network()
        except READ_ERRORS as exc:
            # Previous counters are dropped so the next reading restarts at rate 0
            logger.debug("Network read failed: %s", exc)
            self._last_network = {}
            return ()
        interfaces = []
        for name, counters in current.items():
            previous = self._last_network.get(name)
            if previous is None or self._last_time is None:
                rx_rate = tx_rate = 0.0
            else:
                rx_rate = rate(counter_delta(previous.received, counters.received), elapsed)
                tx_rate = rate(counter_delta(previous.transmitted, counters.transmitted), elapsed)
            interfaces.append(
                NetworkInterface(
                    name=name,
                    received=counters.received,
                    transmitted=counters.transmitted,
                    received_rate=rx_rate,
                    transmitted_rate=tx_rate,
                )
            )
        self._last_network = dict(current)
        return tuple(interfaces)
