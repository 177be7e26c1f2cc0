"""Access to the operating system's counters through psutil."""

import logging
import platform
import socket
import time
from collections.abc import Iterator
from typing import NamedTuple, Protocol

import psutil

from sysmon.errors import CounterInitError
from sysmon.gpu import GpuSource, open_gpu_source
from sysmon.models import GpuInfo, ProcessInfo, SystemInfo

logger = logging.getLogger(__name__)


class DiskSpace(NamedTuple):
    """Raw space figures for one mounted filesystem."""

    name: str
    mount_point: str
    filesystem: str
    total: int
    available: int


class InterfaceCounters(NamedTuple):
    """Cumulative byte counters of one network interface."""

    received: int
    transmitted: int


class CounterReader(Protocol):
    """What the sampler needs from the host."""

    def refresh(self) -> None:
        """Take a fresh reading of memory, CPU and network counters."""

    def memory(self) -> tuple[int, int]:
        """Return (total, used) bytes of physical memory."""

    def cpu_usage(self) -> list[float]:
        """Return usage percent per logical core from the last refresh."""

    def processes(self) -> Iterator[ProcessInfo]:
        """Yield the processes that could be read."""

    def disks(self) -> Iterator[DiskSpace]:
        """Yield the mounted filesystems that could be read."""

    def network(self) -> dict[str, InterfaceCounters]:
        """Return cumulative counters per interface from the last refresh."""

    def gpu(self) -> GpuInfo | None:
        """Read the primary GPU, or None without one."""

    def system_info(self) -> SystemInfo:
        """Read static host facts."""

    def close(self) -> None:
        """Release any resources held."""


# Attributes fetched per process in one pass
PROCESS_ATTRS = ["pid", "name", "cpu_percent", "memory_info", "status"]


class PsutilCounterReader:
    """
    CounterReader backed by psutil.

    Raises CounterInitError if memory or CPU counters cannot be read at all.
    Every later read failure degrades to an empty or missing value.
    """

    def __init__(self, gpu: GpuSource | None = None) -> None:
        try:
            mem = psutil.virtual_memory()
            # Prime CPU percentages (first call returns 0.0)
            cores = psutil.cpu_percent(percpu=True)
        except (OSError, psutil.Error) as exc:
            raise CounterInitError(f"cannot read system counters: {exc}") from exc

        self._memory = (mem.total, mem.used)
        self._cores: list[float] = list(cores)
        self._network: dict[str, InterfaceCounters] = {}
        self._gpu = gpu if gpu is not None else open_gpu_source()

    def refresh(self) -> None:
        try:
            mem = psutil.virtual_memory()
            self._memory = (mem.total, mem.used)
        except (OSError, psutil.Error) as exc:
            logger.debug("Memory read failed: %s", exc)
            self._memory = (0, 0)

        try:
            self._cores = list(psutil.cpu_percent(percpu=True))
        except (OSError, psutil.Error) as exc:
            logger.debug("CPU read failed: %s", exc)
            self._cores = []

        try:
            counters = psutil.net_io_counters(pernic=True)
            self._network = {
                name: InterfaceCounters(c.bytes_recv, c.bytes_sent) for name, c in counters.items()
            }
        except (OSError, psutil.Error) as exc:
            logger.debug("Network read failed: %s", exc)
            self._network = {}

    def memory(self) -> tuple[int, int]:
        return self._memory

    def cpu_usage(self) -> list[float]:
        return list(self._cores)

    def processes(self) -> Iterator[ProcessInfo]:
        """
        Yield every readable process.

        Processes that die mid-poll, deny access or are zombies are skipped.
        """
        for proc in psutil.process_iter(attrs=PROCESS_ATTRS):
            try:
                with proc.oneshot():
                    info = proc.info
                    mem_info = info.get("memory_info")
                    yield ProcessInfo(
                        pid=info.get("pid", 0),
                        name=info.get("name") or "",
                        cpu_percent=info.get("cpu_percent") or 0.0,
                        memory=mem_info.rss if mem_info else 0,
                        status=info.get("status") or "?",
                    )
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue

    def disks(self) -> Iterator[DiskSpace]:
        try:
            partitions = psutil.disk_partitions(all=False)
        except (OSError, psutil.Error) as exc:
            logger.debug("Disk enumeration failed: %s", exc)
            return

        for part in partitions:
            try:
                usage = psutil.disk_usage(part.mountpoint)
            except (OSError, psutil.Error) as exc:
                logger.debug("Skipping disk %s: %s", part.mountpoint, exc)
                continue
            yield DiskSpace(
                name=part.device,
                mount_point=part.mountpoint,
                filesystem=part.fstype,
                total=usage.total,
                available=usage.free,
            )

    def network(self) -> dict[str, InterfaceCounters]:
        return dict(self._network)

    def gpu(self) -> GpuInfo | None:
        return self._gpu.query()

    def system_info(self) -> SystemInfo:
        try:
            uptime = max(time.time() - psutil.boot_time(), 0.0)
        except (OSError, psutil.Error):
            uptime = 0.0

        return SystemInfo(
            os_name=_os_name(),
            os_version=platform.version() or "Unknown",
            kernel_version=platform.release() or "Unknown",
            hostname=socket.gethostname() or "Unknown",
            cpu_count=psutil.cpu_count(logical=True) or 0,
            cpu_brand=_cpu_brand(),
            uptime_seconds=uptime,
        )

    def close(self) -> None:
        self._gpu.close()


def _os_name() -> str:
    system = platform.system()
    if system == "Linux":
        try:
            return platform.freedesktop_os_release().get("PRETTY_NAME", system)
        except OSError:
            return system
    if system == "Darwin":
        release = platform.mac_ver()[0]
        return f"macOS {release}" if release else system
    return system or "Unknown"


def _cpu_brand() -> str:
    brand = platform.processor()
    if brand and brand not in ("x86_64", "arm", "aarch64", "i386"):
        return brand
    try:
        with open("/proc/cpuinfo", encoding="utf-8") as f:
            for line in f:
                if line.startswith("model name"):
                    return line.split(":", 1)[1].strip()
    except OSError:
        pass
    return brand or "Unknown"
