"""Rate and ratio arithmetic shared by the sampler and the UI."""

from collections.abc import Iterable

from sysmon.models import ProcessInfo

BYTES_PER_MB = 1024 * 1024
BYTES_PER_GB = 1024 * 1024 * 1024


def saturating_sub(a: int, b: int) -> int:
    """Return a - b, floored at zero."""
    return a - b if a > b else 0


def usage_percent(used: int, total: int) -> float:
    """Percentage of total that is used; 0.0 when total is zero."""
    if total <= 0:
        return 0.0
    return min(used, total) / total * 100.0


def counter_delta(previous: int, current: int) -> int:
    """
    Increase of a cumulative counter between two readings.

    A counter that went backwards (reset, wrap or a re-created interface)
    contributes nothing for that interval.
    """
    return saturating_sub(current, previous)


def rate(delta: float, elapsed: float) -> float:
    """Convert a counter delta into a per-second rate."""
    if elapsed <= 0:
        return 0.0
    return delta / elapsed


def top_processes(processes: Iterable[ProcessInfo], count: int) -> list[ProcessInfo]:
    """
    Return the count processes using the most memory, largest first.

    Sorting is stable, so ties keep enumeration order.
    """
    if count <= 0:
        return []
    return sorted(processes, key=lambda p: p.memory, reverse=True)[:count]


def bytes_to_mb(size: float) -> float:
    return size / BYTES_PER_MB


def bytes_to_gb(size: float) -> float:
    return size / BYTES_PER_GB
