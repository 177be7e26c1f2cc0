"""User settings and their YAML file."""

import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from sysmon.alerts import Thresholds
from sysmon.errors import SettingsError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "SYSMON_CONFIG"
MIN_REFRESH_INTERVAL = 1.0
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(slots=True, frozen=True)
class Settings:
    """
    Immutable application settings.

    The UI replaces the whole object (dataclasses.replace) to change a value;
    the monitor picks up the new object on its next tick.
    """

    refresh_interval_seconds: float = 2.0
    show_cpu: bool = True
    show_memory: bool = True
    show_gpu: bool = True
    show_processes: bool = True
    show_disks: bool = True
    show_network: bool = True
    notifications_enabled: bool = True
    cpu_threshold: float = 90.0
    memory_threshold: float = 90.0
    gpu_temp_threshold: float = 85.0
    process_count: int = 15
    dark_theme: bool = True
    history_capacity: int = 60
    alert_log_size: int = 50
    log_level: str = "INFO"

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(
            cpu=self.cpu_threshold,
            memory=self.memory_threshold,
            gpu_temp=self.gpu_temp_threshold,
            enabled=self.notifications_enabled,
        )

    @classmethod
    def from_mapping(cls, data: dict[str, Any], base: "Settings | None" = None) -> "Settings":
        """
        Build settings from loaded data.

        Keys missing from data keep their value in base (the defaults when
        base is None). Unknown keys are ignored and invalid values keep the
        base value, each with a warning.
        """
        base = base if base is not None else cls()
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}

        for key, value in data.items():
            if key not in known:
                logger.warning("Ignoring unknown setting %r", key)
                continue
            checked = _validate(key, value)
            if checked is None:
                logger.warning(
                    "Invalid value %r for %s, keeping %r", value, key, getattr(base, key)
                )
                continue
            values[key] = checked

        return replace(base, **values)

    def to_mapping(self) -> dict[str, Any]:
        return asdict(self)


def _validate(key: str, value: Any) -> Any:
    """Return the value coerced to the setting's type, or None if invalid."""
    default = getattr(Settings(), key)

    if isinstance(default, bool):
        return value if isinstance(value, bool) else None

    if isinstance(default, str):
        if not isinstance(value, str):
            return None
        if key == "log_level":
            value = value.upper()
            return value if value in LOG_LEVELS else None
        return value

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None

    if isinstance(default, int):
        if isinstance(value, float) and not value.is_integer():
            return None
        value = int(value)
        minimum = {"process_count": 1, "history_capacity": 2, "alert_log_size": 1}[key]
        return value if value >= minimum else None

    value = float(value)
    if key == "refresh_interval_seconds":
        return value if value >= MIN_REFRESH_INTERVAL else None
    if key in ("cpu_threshold", "memory_threshold"):
        return value if 0.0 < value <= 100.0 else None
    return value if value > 0.0 else None


def default_config_path() -> Path:
    """Settings file location, overridable by the SYSMON_CONFIG variable."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "sysmon" / "settings.yaml"


def load_settings(path: Path | None = None) -> Settings:
    """Load settings, returning defaults if the file does not exist."""
    path = path or default_config_path()
    if not path.exists():
        logger.info("No settings file at %s, using defaults", path)
        return Settings()

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as exc:
        raise SettingsError(f"cannot read settings from {path}: {exc}") from exc

    if data is None:
        return Settings()
    if not isinstance(data, dict):
        raise SettingsError(f"settings file {path} must contain a mapping")

    logger.debug("Loaded settings from %s", path)
    return Settings.from_mapping(data)


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Write every setting to the file, creating its directory."""
    path = path or default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(settings.to_mapping(), f, sort_keys=False)
    logger.info("Saved settings to %s", path)
    return path
