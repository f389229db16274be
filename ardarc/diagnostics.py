from __future__ import annotations

import sys
from typing import List, Protocol, TextIO, Tuple


SEVERITY_INFO = "info"
SEVERITY_WARNING = "warning"
SEVERITY_ERROR = "error"


class DiagnosticSink(Protocol):
    def report(self, severity: str, message: str) -> None: ...


class StderrSink:
    """Print diagnostics as ``Warning: ...`` / ``Error: ...`` lines."""

    def __init__(self, stream: TextIO | None = None, *, min_severity: str = SEVERITY_WARNING):
        self.stream = stream
        self.min_severity = min_severity

    def report(self, severity: str, message: str) -> None:
        order = (SEVERITY_INFO, SEVERITY_WARNING, SEVERITY_ERROR)
        if severity in order and order.index(severity) < order.index(self.min_severity):
            return
        print(f"{severity.capitalize()}: {message}", file=self.stream or sys.stderr)


class CollectingSink:
    def __init__(self):
        self.records: List[Tuple[str, str]] = []

    def report(self, severity: str, message: str) -> None:
        self.records.append((severity, message))

    def messages(self, severity: str) -> List[str]:
        return [m for s, m in self.records if s == severity]
