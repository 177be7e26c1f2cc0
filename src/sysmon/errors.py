"""Exceptions raised by sysmon."""


class SysmonError(Exception):
    """Base class for sysmon errors."""


class CounterInitError(SysmonError):
    """The OS counters could not be read at all; no samples can be produced."""


class SettingsError(SysmonError):
    """The settings file exists but could not be read or parsed."""
