"""Threshold alert evaluation."""

from dataclasses import dataclass

from sysmon.history import HistoryRing
from sysmon.models import Alert, AlertKind, Sample

# Disk usage above this percentage always counts as low space.
DISK_USAGE_LIMIT = 90.0

DEFAULT_LOG_SIZE = 50


@dataclass(slots=True, frozen=True)
class Thresholds:
    """Alert limits. Nothing is reported while enabled is False."""

    cpu: float = 90.0
    memory: float = 90.0
    gpu_temp: float = 85.0
    enabled: bool = True


def evaluate(sample: Sample, thresholds: Thresholds) -> list[Alert]:
    """
    Return the alerts triggered by a sample.

    Each check is independent, so a sample can produce several alerts, and
    one DiskSpaceLow alert is emitted per offending disk. Every check,
    including the disk check, is gated by thresholds.enabled.
    """
    if not thresholds.enabled:
        return []

    alerts: list[Alert] = []
    t = sample.timestamp

    if sample.cpu_usage_percent > thresholds.cpu:
        alerts.append(
            Alert(
                timestamp=t,
                kind=AlertKind.CPU_HIGH,
                message=f"CPU usage high: {sample.cpu_usage_percent:.1f}%",
                value=sample.cpu_usage_percent,
            )
        )

    if sample.memory.percentage > thresholds.memory:
        alerts.append(
            Alert(
                timestamp=t,
                kind=AlertKind.MEMORY_HIGH,
                message=f"Memory usage high: {sample.memory.percentage:.1f}%",
                value=sample.memory.percentage,
            )
        )

    gpu = sample.gpu
    if gpu is not None and gpu.temperature_celsius is not None:
        if gpu.temperature_celsius > thresholds.gpu_temp:
            alerts.append(
                Alert(
                    timestamp=t,
                    kind=AlertKind.GPU_TEMP_HIGH,
                    message=f"GPU temperature high: {gpu.temperature_celsius:.0f}°C",
                    value=float(gpu.temperature_celsius),
                )
            )

    for disk in sample.disks:
        if disk.usage_percent > DISK_USAGE_LIMIT:
            alerts.append(
                Alert(
                    timestamp=t,
                    kind=AlertKind.DISK_SPACE_LOW,
                    message=f"Disk space low on {disk.mount_point}: {disk.usage_percent:.1f}% used",
                    value=disk.usage_percent,
                )
            )

    return alerts


class AlertLog:
    """Bounded log of past alerts, oldest first."""

    def __init__(self, size: int = DEFAULT_LOG_SIZE) -> None:
        self._ring: HistoryRing[Alert] = HistoryRing(size)

    @property
    def size(self) -> int:
        return self._ring.capacity

    def add(self, alerts: list[Alert]) -> None:
        self._ring.extend(alerts)

    def clear(self) -> None:
        self._ring.clear()

    def entries(self) -> tuple[Alert, ...]:
        return self._ring.to_tuple()

    def __len__(self) -> int:
        return len(self._ring)
