"""Shared fixtures: a scriptable counter reader and sample builders."""

from collections.abc import Iterator

import pytest

from sysmon.counters import DiskSpace, InterfaceCounters
from sysmon.models import (
    DiskInfo,
    GpuInfo,
    MemoryInfo,
    ProcessInfo,
    Sample,
    SystemInfo,
)


class FakeCounterReader:
    """CounterReader whose readings are set directly by the test."""

    def __init__(self) -> None:
        self.total_memory = 16_000_000_000
        self.used_memory = 8_000_000_000
        self.cores: list[float] = [10.0, 30.0]
        self.process_list: list[ProcessInfo] = []
        self.disk_list: list[DiskSpace] = []
        self.interfaces: dict[str, InterfaceCounters] = {}
        self.gpu_info: GpuInfo | None = None
        self.info = SystemInfo(
            os_name="TestOS 1.0",
            os_version="1.0",
            kernel_version="6.0.0-test",
            hostname="testhost",
            cpu_count=2,
            cpu_brand="Test CPU",
            uptime_seconds=3600.0,
        )
        self.refresh_count = 0
        self.closed = False

    def refresh(self) -> None:
        self.refresh_count += 1

    def memory(self) -> tuple[int, int]:
        return self.total_memory, self.used_memory

    def cpu_usage(self) -> list[float]:
        return list(self.cores)

    def processes(self) -> Iterator[ProcessInfo]:
        return iter(list(self.process_list))

    def disks(self) -> Iterator[DiskSpace]:
        return iter(list(self.disk_list))

    def network(self) -> dict[str, InterfaceCounters]:
        return dict(self.interfaces)

    def gpu(self) -> GpuInfo | None:
        return self.gpu_info

    def system_info(self) -> SystemInfo:
        return self.info

    def close(self) -> None:
        self.closed = True


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def reader() -> FakeCounterReader:
    return FakeCounterReader()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def make_disk(usage_percent: float, mount_point: str = "/", total: int = 1000) -> DiskInfo:
    available = int(total - total * usage_percent / 100.0)
    return DiskInfo(
        name=f"/dev/{mount_point.strip('/') or 'root'}",
        mount_point=mount_point,
        filesystem="ext4",
        total=total,
        available=available,
        usage_percent=usage_percent,
    )


def make_sample(
    cpu: float = 10.0,
    memory_percent: float = 50.0,
    gpu: GpuInfo | None = None,
    disks: tuple[DiskInfo, ...] = (),
    timestamp: float = 1.0,
) -> Sample:
    total = 16_000_000_000
    return Sample(
        timestamp=timestamp,
        wall_time="2024-01-01 12:00:00",
        memory=MemoryInfo(
            total=total, used=int(total * memory_percent / 100.0), percentage=memory_percent
        ),
        cpu_usage_percent=cpu,
        gpu=gpu,
        disks=disks,
    )
