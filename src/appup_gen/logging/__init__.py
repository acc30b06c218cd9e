"""Progress reporting and structured run history."""

from .console import ConsoleReporter
from .history import JsonlRunLog, RunEvent, utc_timestamp

__all__ = ["ConsoleReporter", "JsonlRunLog", "RunEvent", "utc_timestamp"]
