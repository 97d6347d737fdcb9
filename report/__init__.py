"""Report generators for the FUV quote engine."""

from .console_reporter import ConsoleReporter
from .json_reporter import JSONReporter

__all__ = [
    "ConsoleReporter",
    "JSONReporter",
]
