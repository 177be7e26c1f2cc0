"""Snapshot serialization for reports and the clipboard."""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from sysmon.models import (
    Alert,
    AlertKind,
    CoreUsage,
    DiskInfo,
    GpuInfo,
    HistoryPoint,
    HistorySnapshot,
    MemoryInfo,
    NetworkInterface,
    ProcessInfo,
    Sample,
    Snapshot,
    SystemInfo,
)

REPORT_VERSION = 1


def _alert_to_dict(alert: Alert) -> dict[str, Any]:
    data = asdict(alert)
    data["kind"] = alert.kind.value
    return data


def snapshot_to_dict(snapshot: Snapshot) -> dict[str, Any]:
    """Convert a snapshot to plain dicts and lists, field names unchanged."""
    return {
        "version": REPORT_VERSION,
        "sequence": snapshot.sequence,
        "sample": asdict(snapshot.sample) if snapshot.sample is not None else None,
        "history": asdict(snapshot.history),
        "alerts": [_alert_to_dict(a) for a in snapshot.alerts],
        "alert_log": [_alert_to_dict(a) for a in snapshot.alert_log],
        "system_info": asdict(snapshot.system_info),
    }


def _alert_from_dict(data: dict[str, Any]) -> Alert:
    return Alert(
        timestamp=data["timestamp"],
        kind=AlertKind(data["kind"]),
        message=data["message"],
        value=data["value"],
    )


def _sample_from_dict(data: dict[str, Any]) -> Sample:
    gpu = data.get("gpu")
    return Sample(
        timestamp=data["timestamp"],
        wall_time=data["wall_time"],
        memory=MemoryInfo(**data["memory"]),
        cpu_usage_percent=data["cpu_usage_percent"],
        cores=tuple(CoreUsage(**c) for c in data.get("cores", ())),
        gpu=GpuInfo(**gpu) if gpu is not None else None,
        processes=tuple(ProcessInfo(**p) for p in data.get("processes", ())),
        disks=tuple(DiskInfo(**d) for d in data.get("disks", ())),
        network=tuple(NetworkInterface(**n) for n in data.get("network", ())),
    )


def snapshot_from_dict(data: dict[str, Any]) -> Snapshot:
    """Rebuild a snapshot from snapshot_to_dict() output."""
    history = data.get("history", {})
    sample = data.get("sample")
    return Snapshot(
        sequence=data["sequence"],
        sample=_sample_from_dict(sample) if sample is not None else None,
        history=HistorySnapshot(
            **{
                name: tuple(HistoryPoint(**p) for p in points)
                for name, points in history.items()
            }
        ),
        alerts=tuple(_alert_from_dict(a) for a in data.get("alerts", ())),
        alert_log=tuple(_alert_from_dict(a) for a in data.get("alert_log", ())),
        system_info=SystemInfo(**data["system_info"]),
    )


def snapshot_to_json(snapshot: Snapshot, indent: int | None = 2) -> str:
    return json.dumps(snapshot_to_dict(snapshot), indent=indent, ensure_ascii=False)


def snapshot_from_json(text: str) -> Snapshot:
    return snapshot_from_dict(json.loads(text))


def write_report(snapshot: Snapshot, path: Path) -> Path:
    """Write a snapshot as a JSON report."""
    path.write_text(snapshot_to_json(snapshot) + "\n", encoding="utf-8")
    return path
