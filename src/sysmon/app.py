"""sysmon - Main Textual application."""

import argparse
import dataclasses
import logging
import sys
import time
from datetime import datetime
from enum import Enum
from pathlib import Path

from rich.markup import escape
from textual.app import App, ComposeResult
from textual.containers import Container, Horizontal, Vertical
from textual.logging import TextualHandler
from textual.widgets import DataTable, Footer, Sparkline, Static

from sysmon.counters import PsutilCounterReader
from sysmon.errors import CounterInitError, SettingsError
from sysmon.export import write_report
from sysmon.metrics import bytes_to_gb, bytes_to_mb
from sysmon.models import Alert, ProcessInfo, Sample, Snapshot, SystemInfo
from sysmon.monitor import WARMUP_DELAY, SystemMonitor
from sysmon.settings import Settings, load_settings, save_settings
from sysmon.store import SnapshotStore

logger = logging.getLogger(__name__)

BAR_WIDTH = 20
ALERTS_SHOWN = 8


class SortKey(Enum):
    """Sort keys for the process table."""

    MEM = "mem"
    CPU = "cpu"
    PID = "pid"
    NAME = "name"


def format_bytes(size: float) -> str:
    """Format bytes as human-readable string."""
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:5.1f}{unit}" if unit != "B" else f"{int(size):5d}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def format_rate(bytes_per_second: float) -> str:
    """Format a byte rate in MB/s."""
    return f"{bytes_to_mb(bytes_per_second):.2f} MB/s"


def format_uptime(seconds: float) -> str:
    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    if days > 0:
        return f"{days} days, {hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def usage_color(percentage: float) -> str:
    """Colour for a usage bar: green below 50%, yellow below 75%, else red."""
    if percentage < 50.0:
        return "green"
    if percentage < 75.0:
        return "yellow"
    return "red"


def temperature_color(celsius: float) -> str:
    if celsius < 70.0:
        return "green"
    if celsius < 85.0:
        return "yellow"
    return "red"


def usage_bar(percentage: float, width: int = BAR_WIDTH) -> str:
    """Render a percentage as a coloured bar of fixed width."""
    filled = min(max(int(percentage / 100.0 * width), 0), width)
    color = usage_color(percentage)
    # Escaped bracket keeps the bar container out of markup parsing
    return f"\\[[{color}]{'█' * filled}[/{color}][dim]{'░' * (width - filled)}[/dim]]"


class HeaderStats(Static):
    """Header widget showing CPU, memory and GPU usage and host facts."""

    DEFAULT_CSS = """
    HeaderStats {
        height: auto;
        min-height: 5;
        padding: 0 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize HeaderStats."""
        super().__init__(*args, **kwargs)
        self._sample: Sample | None = None
        self._system_info: SystemInfo = SystemInfo.unknown()
        self._show_gpu = True

    def compose(self) -> ComposeResult:
        """Compose the header stats layout."""
        yield Horizontal(
            Static(self._get_usage_info(), id="usage-info"),
            Static(self._get_host_info(), id="host-info"),
        )

    def update_stats(
        self, sample: Sample | None, system_info: SystemInfo, show_gpu: bool = True
    ) -> None:
        """Update the statistics from a snapshot's sample and host facts."""
        self._sample = sample
        self._show_gpu = show_gpu
        self._system_info = system_info
        try:
            self.query_one("#usage-info", Static).update(self._get_usage_info())
            self.query_one("#host-info", Static).update(self._get_host_info())
        except Exception:
            pass  # Widget not mounted yet

    def _get_usage_info(self) -> str:
        sample = self._sample
        if sample is None:
            return "Loading system information..."

        mem = sample.memory
        lines = [
            f"CPU {usage_bar(sample.cpu_usage_percent)} {sample.cpu_usage_percent:5.1f}%",
            f"Mem {usage_bar(mem.percentage)} "
            f"{bytes_to_gb(mem.used):.2f}G/{bytes_to_gb(mem.total):.2f}G "
            f"(free {bytes_to_gb(mem.free):.2f}G)",
        ]

        gpu = sample.gpu
        if gpu is not None and self._show_gpu:
            util = gpu.utilization_percent
            util_text = f"{util:5.1f}%" if util is not None else "  n/a"
            lines.append(f"GPU {usage_bar(util or 0.0)} {util_text}  {escape(gpu.name)}")
            details = []
            if gpu.memory_used is not None and gpu.memory_total is not None:
                details.append(
                    f"VRAM {bytes_to_mb(gpu.memory_used):.0f}MB/{bytes_to_mb(gpu.memory_total):.0f}MB"
                    f" ({gpu.memory_percent or 0.0:.1f}%)"
                )
            if gpu.temperature_celsius is not None:
                color = temperature_color(gpu.temperature_celsius)
                details.append(f"Temp [{color}]{gpu.temperature_celsius:.0f}°C[/{color}]")
            if details:
                lines.append("    " + "  ".join(details))
        return "\n".join(lines)

    def _get_host_info(self) -> str:
        info = self._system_info
        updated = self._sample.wall_time if self._sample is not None else "-"
        return (
            f"{escape(info.hostname)}  {escape(info.os_name)}\n"
            f"Kernel {escape(info.kernel_version)}\n"
            f"{escape(info.cpu_brand)} ({info.cpu_count} threads)\n"
            f"Uptime: {format_uptime(info.uptime_seconds)}  Updated: {updated}"
        )


class HistoryCharts(Horizontal):
    """Sparklines for the CPU and memory history."""

    DEFAULT_CSS = """
    HistoryCharts {
        height: 4;
    }

    HistoryCharts Vertical {
        width: 1fr;
        padding: 0 1;
    }

    HistoryCharts Sparkline {
        height: 2;
    }
    """

    def compose(self) -> ComposeResult:
        with Vertical():
            yield Static("CPU history")
            yield Sparkline([], summary_function=max, id="cpu-history")
        with Vertical():
            yield Static("Memory history")
            yield Sparkline([], summary_function=max, id="memory-history")

    def update_history(self, snapshot: Snapshot) -> None:
        self.query_one("#cpu-history", Sparkline).data = [p.value for p in snapshot.history.cpu]
        self.query_one("#memory-history", Sparkline).data = [
            p.value for p in snapshot.history.memory
        ]


class ProcessTable(Container):
    """Container for the top processes table."""

    DEFAULT_CSS = """
    ProcessTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ProcessTable."""
        super().__init__(*args, **kwargs)
        self._sort_key: SortKey = SortKey.MEM
        self._sort_reverse: bool = True
        self._processes: list[ProcessInfo] = []

    @property
    def sort_key(self) -> SortKey:
        """Get current sort key."""
        return self._sort_key

    def cycle_sort(self) -> SortKey:
        """Cycle to the next sort key and return it."""
        keys = list(SortKey)
        self._sort_key = keys[(keys.index(self._sort_key) + 1) % len(keys)]
        self._sort_reverse = self._sort_key in (SortKey.CPU, SortKey.MEM)
        if self.is_mounted:
            self.update_processes(self._processes)
        return self._sort_key

    def compose(self) -> ComposeResult:
        """Compose the process table."""
        yield DataTable(id="process-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#process-table", DataTable)
        table.cursor_type = "row"
        table.add_column("PID", key="pid", width=8)
        table.add_column("NAME", key="name", width=30)
        table.add_column("MEMORY", key="memory", width=12)
        table.add_column("CPU%", key="cpu", width=8)
        table.add_column("S", key="status", width=10)

    def update_processes(self, processes: list[ProcessInfo]) -> None:
        """Replace the table rows with the given processes in the current sort order."""
        self._processes = list(processes)
        table = self.query_one("#process-table", DataTable)
        table.clear()
        for proc in self._sort_processes(self._processes):
            memory_mb = bytes_to_mb(proc.memory)
            color = "red" if memory_mb > 500.0 else "yellow" if memory_mb > 200.0 else "green"
            name = proc.name if len(proc.name) <= 28 else proc.name[:27] + "..."
            table.add_row(
                str(proc.pid),
                escape(name),
                f"[{color}]{memory_mb:.2f} MB[/{color}]",
                f"{proc.cpu_percent:5.1f}",
                proc.status,
                key=str(proc.pid),
            )

    def _sort_processes(self, processes: list[ProcessInfo]) -> list[ProcessInfo]:
        """Sort processes based on the current sort key."""
        key_func = {
            SortKey.MEM: lambda p: p.memory,
            SortKey.CPU: lambda p: p.cpu_percent,
            SortKey.PID: lambda p: p.pid,
            SortKey.NAME: lambda p: p.name.lower(),
        }
        return sorted(processes, key=key_func[self._sort_key], reverse=self._sort_reverse)


class ResourcesPanel(Static):
    """Disk space and network throughput."""

    DEFAULT_CSS = """
    ResourcesPanel {
        height: auto;
        padding: 0 1;
    }
    """

    def update_resources(self, sample: Sample | None, show_disks: bool, show_network: bool) -> None:
        if sample is None:
            self.update("")
            return
        lines = []
        if show_disks:
            for disk in sample.disks:
                lines.append(
                    f"{escape(disk.mount_point):<20} {usage_bar(disk.usage_percent, 10)} "
                    f"{disk.usage_percent:5.1f}%  {format_bytes(disk.available)} free "
                    f"of {format_bytes(disk.total)} ({disk.filesystem})"
                )
        if show_network:
            lines.append(
                f"Network  down {format_rate(sample.total_rx_rate)}  "
                f"up {format_rate(sample.total_tx_rate)}"
            )
        self.update("\n".join(lines))


class AlertPanel(Static):
    """Most recent entries of the alert log."""

    DEFAULT_CSS = """
    AlertPanel {
        height: auto;
        max-height: 10;
        padding: 0 1;
        color: $warning;
    }
    """

    def update_alerts(self, alert_log: tuple[Alert, ...]) -> None:
        recent = alert_log[-ALERTS_SHOWN:]
        self.update("\n".join(escape(f"[{a.timestamp:8.1f}s] {a.message}") for a in recent))


class SysmonApp(App):
    """Main sysmon application."""

    TITLE = "sysmon"
    SUB_TITLE = "System Monitor"

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-stats {
        dock: top;
        height: auto;
        min-height: 6;
    }

    Horizontal {
        height: auto;
    }

    #usage-info {
        width: 2fr;
        padding-right: 2;
    }

    #host-info {
        width: 1fr;
        padding-left: 2;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("f6", "sort", "Sort"),
        ("r", "reset", "Reset stats"),
        ("e", "export", "Export"),
        ("n", "toggle_notifications", "Alerts on/off"),
        ("s", "save_settings", "Save settings"),
    ]

    def __init__(
        self,
        monitor: SystemMonitor,
        settings_path: Path | None = None,
        report_dir: Path | None = None,
    ) -> None:
        """Initialize the SysmonApp with the monitor whose store it renders."""
        super().__init__()
        self._monitor = monitor
        self._store = monitor.store
        self._settings_path = settings_path
        self._report_dir = report_dir or Path.cwd()
        self._last_sequence = -1

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield HeaderStats(id="header-stats")
        yield HistoryCharts(id="history-charts")
        yield ResourcesPanel(id="resources")
        yield ProcessTable(id="processes")
        yield AlertPanel(id="alerts")
        yield Footer()

    def on_mount(self) -> None:
        """Start the system monitor when the app is mounted."""
        settings = self._monitor.settings
        self.theme = "textual-dark" if settings.dark_theme else "textual-light"
        self._apply_visibility(settings)
        self._monitor.start()
        # Poll the store on the UI's own cadence
        self.set_interval(0.5, self._check_for_updates)

    def _apply_visibility(self, settings: Settings) -> None:
        self.query_one("#history-charts").display = settings.show_cpu or settings.show_memory
        self.query_one("#processes").display = settings.show_processes
        self.query_one("#resources").display = settings.show_disks or settings.show_network

    def _check_for_updates(self) -> None:
        """Redraw if a newer snapshot has been published."""
        snapshot = self._store.read()
        if snapshot.sequence == self._last_sequence:
            return
        self._last_sequence = snapshot.sequence
        self._update_ui(snapshot)

    def _update_ui(self, snapshot: Snapshot) -> None:
        """Update the UI with the new snapshot."""
        settings = self._monitor.settings
        self.query_one(HeaderStats).update_stats(
            snapshot.sample, snapshot.system_info, show_gpu=settings.show_gpu
        )
        self.query_one(HistoryCharts).update_history(snapshot)
        self.query_one(ResourcesPanel).update_resources(
            snapshot.sample, settings.show_disks, settings.show_network
        )
        if snapshot.sample is not None:
            self.query_one(ProcessTable).update_processes(list(snapshot.sample.processes))
        self.query_one(AlertPanel).update_alerts(snapshot.alert_log)

    def action_sort(self) -> None:
        """Cycle through sort keys."""
        new_sort_key = self.query_one(ProcessTable).cycle_sort()
        self.notify(f"Sort: {new_sort_key.value.upper()}")

    def action_reset(self) -> None:
        self._monitor.reset_statistics()
        self.notify("Statistics will reset on the next refresh")

    def action_export(self) -> None:
        """Write the current snapshot as a JSON report."""
        snapshot = self._store.read()
        name = f"sysmon-report-{datetime.now():%Y%m%d-%H%M%S}.json"
        try:
            path = write_report(snapshot, self._report_dir / name)
        except OSError as exc:
            logger.error("Export failed: %s", exc)
            self.notify(f"Export failed: {exc}", severity="error")
            return
        self.notify(f"Report saved to {path}")

    def action_toggle_notifications(self) -> None:
        settings = self._monitor.settings
        enabled = not settings.notifications_enabled
        self._monitor.update_settings(dataclasses.replace(settings, notifications_enabled=enabled))
        self.notify(f"Alerts {'enabled' if enabled else 'disabled'}")

    def action_save_settings(self) -> None:
        try:
            path = save_settings(self._monitor.settings, self._settings_path)
        except OSError as exc:
            logger.error("Saving settings failed: %s", exc)
            self.notify(f"Saving settings failed: {exc}", severity="error")
            return
        self.notify(f"Settings saved to {path}")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()


def configure_logging(level: str, tui: bool) -> None:
    """Send log records to Textual's devtools console in TUI mode, else stderr."""
    handler = TextualHandler() if tui else logging.StreamHandler(sys.stderr)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[handler],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sysmon", description="System resource monitor")
    parser.add_argument("--config", type=Path, default=None, help="settings file (YAML)")
    parser.add_argument("--refresh-rate", type=float, default=None, help="seconds between samples")
    parser.add_argument("--process-count", type=int, default=None, help="top processes shown")
    parser.add_argument("--export", type=Path, default=None, metavar="PATH",
                        help="write one JSON report to PATH and exit")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Layer command line options over loaded settings, validating them the same way."""
    overrides = {}
    if args.refresh_rate is not None:
        overrides["refresh_interval_seconds"] = args.refresh_rate
    if args.process_count is not None:
        overrides["process_count"] = args.process_count
    if args.log_level is not None:
        overrides["log_level"] = args.log_level
    if not overrides:
        return settings
    return Settings.from_mapping(overrides, base=settings)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the sysmon application."""
    args = build_parser().parse_args(argv)

    try:
        settings = apply_overrides(load_settings(args.config), args)
    except SettingsError as exc:
        print(f"sysmon: {exc}", file=sys.stderr)
        return 2

    configure_logging(settings.log_level, tui=args.export is None)

    try:
        reader = PsutilCounterReader()
    except CounterInitError as exc:
        logger.critical("Cannot start: %s", exc)
        print(f"sysmon: {exc}", file=sys.stderr)
        return 1

    monitor = SystemMonitor(reader, SnapshotStore(), settings)
    try:
        if args.export is not None:
            time.sleep(WARMUP_DELAY)
            write_report(monitor.tick(), args.export)
            logger.info("Report written to %s", args.export)
        else:
            SysmonApp(monitor, settings_path=args.config).run()
    finally:
        monitor.stop()
        reader.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
