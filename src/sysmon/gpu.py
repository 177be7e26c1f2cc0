"""GPU readings through NVIDIA NVML."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TypeVar

import pynvml

from sysmon.models import GpuInfo

logger = logging.getLogger(__name__)

T = TypeVar("T")


class GpuSource(ABC):
    """Where GPU readings come from. Chosen once at startup."""

    available: bool = False

    @abstractmethod
    def query(self) -> GpuInfo | None:
        """Read the primary device, or None when there is no device."""

    def close(self) -> None:
        """Release driver resources."""


class UnavailableGpu(GpuSource):
    """No supported GPU or driver on this host."""

    def query(self) -> GpuInfo | None:
        return None


class NvmlGpu(GpuSource):
    """
    A single NVIDIA device queried via NVML.

    A failed query leaves only the affected field as None.
    """

    available = True

    def __init__(self, handle, shutdown_on_close: bool = True) -> None:
        self._handle = handle
        self._shutdown_on_close = shutdown_on_close

    def query(self) -> GpuInfo | None:
        name = self._read(pynvml.nvmlDeviceGetName)
        if isinstance(name, bytes):
            name = name.decode(errors="replace")

        utilization = self._read(pynvml.nvmlDeviceGetUtilizationRates)
        memory = self._read(pynvml.nvmlDeviceGetMemoryInfo)
        temperature = self._read(
            lambda handle: pynvml.nvmlDeviceGetTemperature(handle, pynvml.NVML_TEMPERATURE_GPU)
        )

        return GpuInfo(
            name=name or "Unknown GPU",
            utilization_percent=float(utilization.gpu) if utilization is not None else None,
            memory_used=int(memory.used) if memory is not None else None,
            memory_total=int(memory.total) if memory is not None else None,
            temperature_celsius=float(temperature) if temperature is not None else None,
        )

    def _read(self, getter: Callable[..., T]) -> T | None:
        try:
            return getter(self._handle)
        except pynvml.NVMLError as exc:
            logger.debug("GPU query %s failed: %s", getattr(getter, "__name__", "?"), exc)
            return None

    def close(self) -> None:
        if self._shutdown_on_close:
            _shutdown()


def _shutdown() -> None:
    try:
        pynvml.nvmlShutdown()
    except pynvml.NVMLError as exc:
        logger.debug("NVML shutdown failed: %s", exc)


def open_gpu_source(index: int = 0) -> GpuSource:
    """Select the GPU source for this host."""
    try:
        pynvml.nvmlInit()
    except pynvml.NVMLError as exc:
        logger.info("GPU monitoring unavailable: %s", exc)
        return UnavailableGpu()

    try:
        if pynvml.nvmlDeviceGetCount() <= index:
            logger.info("GPU monitoring unavailable: no device at index %d", index)
            _shutdown()
            return UnavailableGpu()
        handle = pynvml.nvmlDeviceGetHandleByIndex(index)
    except pynvml.NVMLError as exc:
        logger.info("GPU monitoring unavailable: %s", exc)
        _shutdown()
        return UnavailableGpu()

    logger.info("GPU monitoring initialized via NVML (device %d)", index)
    return NvmlGpu(handle)
