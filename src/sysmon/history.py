"""Bounded time series kept for charting."""

from collections import deque
from collections.abc import Iterator
from enum import Enum
from typing import Generic, TypeVar

from sysmon.models import HistoryPoint, HistorySnapshot, Sample

T = TypeVar("T")

DEFAULT_CAPACITY = 60


class HistoryRing(Generic[T]):
    """
    Fixed-capacity FIFO sequence.

    Appending to a full ring drops the oldest entry. The ring is not
    synchronized; its owner publishes copies instead of sharing it.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._items: deque[T] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._items.maxlen  # type: ignore[return-value]

    def push(self, item: T) -> None:
        """Append an item, evicting from the front when full."""
        self._items.append(item)

    def extend(self, items: list[T]) -> None:
        self._items.extend(items)

    def clear(self) -> None:
        self._items.clear()

    def to_tuple(self) -> tuple[T, ...]:
        """Copy the contents out, oldest first."""
        return tuple(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)


class Metric(Enum):
    """Series tracked by History."""

    CPU = "cpu"
    MEMORY = "memory"
    GPU = "gpu"
    NET_DOWN = "net_down"
    NET_UP = "net_up"


class History:
    """The five history series fed from each sample."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._rings: dict[Metric, HistoryRing[HistoryPoint]] = {
            metric: HistoryRing(capacity) for metric in Metric
        }

    @property
    def capacity(self) -> int:
        return self._rings[Metric.CPU].capacity

    def series(self, metric: Metric) -> HistoryRing[HistoryPoint]:
        return self._rings[metric]

    def record(self, sample: Sample) -> None:
        """Append one point per series. GPU is skipped without a reading."""
        t = sample.timestamp
        self._rings[Metric.CPU].push(HistoryPoint(t, sample.cpu_usage_percent))
        self._rings[Metric.MEMORY].push(HistoryPoint(t, sample.memory.percentage))
        if sample.gpu is not None and sample.gpu.utilization_percent is not None:
            self._rings[Metric.GPU].push(HistoryPoint(t, sample.gpu.utilization_percent))
        self._rings[Metric.NET_DOWN].push(HistoryPoint(t, sample.total_rx_rate))
        self._rings[Metric.NET_UP].push(HistoryPoint(t, sample.total_tx_rate))

    def clear(self) -> None:
        for ring in self._rings.values():
            ring.clear()

    def resize(self, capacity: int) -> "History":
        """Return a new History with the given capacity keeping the newest points."""
        resized = History(capacity)
        for metric, ring in self._rings.items():
            resized._rings[metric].extend(list(ring))
        return resized

    def snapshot(self) -> HistorySnapshot:
        return HistorySnapshot(
            cpu=self._rings[Metric.CPU].to_tuple(),
            memory=self._rings[Metric.MEMORY].to_tuple(),
            gpu=self._rings[Metric.GPU].to_tuple(),
            net_down=self._rings[Metric.NET_DOWN].to_tuple(),
            net_up=self._rings[Metric.NET_UP].to_tuple(),
        )
