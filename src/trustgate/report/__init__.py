"""
Reporting module for trustgate.

Denied invocations are not errors; they are reported here and a placeholder
identifying the blocked digest is shown instead of the fragment's output.

Reporters:
    - LoggingReporter: warning log line per denial
    - ConsoleReporter: Rich panel per denial
    - RecordingReporter: keeps DeniedInvocation records in memory

Example:
    from trustgate.report import ConsoleReporter

    reporter = ConsoleReporter()
    reporter.report_denied("notes/daily.md", digest, "dataviewjs")
"""

from trustgate.report.base import (
    DeniedInvocation,
    LoggingReporter,
    RecordingReporter,
    Reporter,
    render_placeholder,
)
from trustgate.report.console import ConsoleReporter

__all__ = [
    "ConsoleReporter",
    "DeniedInvocation",
    "LoggingReporter",
    "RecordingReporter",
    "Reporter",
    "render_placeholder",
]
