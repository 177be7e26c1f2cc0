"""Data models for sysmon."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(slots=True, frozen=True)
class MemoryInfo:
    """Physical memory totals in bytes."""

    total: int
    used: int  # Clamped to total
    percentage: float

    @property
    def free(self) -> int:
        """Bytes not in use, never negative."""
        return max(self.total - self.used, 0)


@dataclass(slots=True, frozen=True)
class CoreUsage:
    """Usage of a single logical core."""

    core_id: int
    usage_percent: float


@dataclass(slots=True, frozen=True)
class GpuInfo:
    """Readings from the primary GPU. Any reading may be missing."""

    name: str
    utilization_percent: float | None = None
    memory_used: int | None = None
    memory_total: int | None = None
    temperature_celsius: float | None = None

    @property
    def memory_percent(self) -> float | None:
        """VRAM usage, or None unless both memory readings are known."""
        if self.memory_used is None or not self.memory_total:
            return None
        return self.memory_used / self.memory_total * 100.0


@dataclass(slots=True, frozen=True)
class ProcessInfo:
    """Immutable snapshot of a process state."""

    pid: int
    name: str
    cpu_percent: float
    memory: int  # RSS bytes
    status: str


@dataclass(slots=True, frozen=True)
class DiskInfo:
    """Space on one mounted filesystem."""

    name: str
    mount_point: str
    filesystem: str
    total: int
    available: int
    usage_percent: float


@dataclass(slots=True, frozen=True)
class NetworkInterface:
    """Cumulative counters and rates (bytes/sec) for one interface."""

    name: str
    received: int
    transmitted: int
    received_rate: float
    transmitted_rate: float


@dataclass(slots=True, frozen=True)
class SystemInfo:
    """Host facts captured at startup and refreshed on demand."""

    os_name: str
    os_version: str
    kernel_version: str
    hostname: str
    cpu_count: int
    cpu_brand: str
    uptime_seconds: float

    @classmethod
    def unknown(cls) -> "SystemInfo":
        return cls(
            os_name="Unknown",
            os_version="Unknown",
            kernel_version="Unknown",
            hostname="Unknown",
            cpu_count=0,
            cpu_brand="Unknown",
            uptime_seconds=0.0,
        )


@dataclass(slots=True, frozen=True)
class Sample:
    """One consistent point-in-time reading of every tracked metric."""

    timestamp: float  # Seconds since the sampler started
    wall_time: str
    memory: MemoryInfo
    cpu_usage_percent: float
    cores: tuple[CoreUsage, ...] = ()
    gpu: GpuInfo | None = None
    processes: tuple[ProcessInfo, ...] = ()
    disks: tuple[DiskInfo, ...] = ()
    network: tuple[NetworkInterface, ...] = ()

    @property
    def total_rx_rate(self) -> float:
        """Received bytes/sec summed over all interfaces."""
        return sum(iface.received_rate for iface in self.network)

    @property
    def total_tx_rate(self) -> float:
        """Transmitted bytes/sec summed over all interfaces."""
        return sum(iface.transmitted_rate for iface in self.network)


@dataclass(slots=True, frozen=True)
class HistoryPoint:
    """A single value in a history series."""

    time: float
    value: float


class AlertKind(Enum):
    """Kinds of threshold alerts."""

    CPU_HIGH = "CpuHigh"
    MEMORY_HIGH = "MemoryHigh"
    GPU_TEMP_HIGH = "GpuTempHigh"
    DISK_SPACE_LOW = "DiskSpaceLow"


@dataclass(slots=True, frozen=True)
class Alert:
    """A threshold that was exceeded by a sample."""

    timestamp: float
    kind: AlertKind
    message: str
    value: float


@dataclass(slots=True, frozen=True)
class HistorySnapshot:
    """Copied-out contents of the five history series, oldest first."""

    cpu: tuple[HistoryPoint, ...] = ()
    memory: tuple[HistoryPoint, ...] = ()
    gpu: tuple[HistoryPoint, ...] = ()
    net_down: tuple[HistoryPoint, ...] = ()
    net_up: tuple[HistoryPoint, ...] = ()


@dataclass(slots=True, frozen=True)
class Snapshot:
    """Everything a reader sees from a single publish."""

    sequence: int
    sample: Sample | None
    history: HistorySnapshot = field(default_factory=HistorySnapshot)
    alerts: tuple[Alert, ...] = ()
    alert_log: tuple[Alert, ...] = ()
    system_info: SystemInfo = field(default_factory=SystemInfo.unknown)

    @classmethod
    def empty(cls) -> "Snapshot":
        """The snapshot visible before the first tick is published."""
        return cls(sequence=0, sample=None)
