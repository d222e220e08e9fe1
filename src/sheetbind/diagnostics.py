"""
Side channel for problems that do not abort a read or write.

A ``Diagnostics`` instance (or any callable taking a ``Diagnostic``) is passed
into the public entry points. Every entry is also sent to the module logger.
"""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Diagnostic:
    """A single problem found while reading or writing a sheet.

    ``row`` and ``column`` are zero-based positions in the sheet if known.
    """

    level: int
    message: str
    row: int | None = None
    column: int | None = None
    field: str | None = None

    def __str__(self) -> str:
        location = []
        if self.row is not None:
            location.append(f"row {self.row + 1}")
        if self.column is not None:
            location.append(f"column {self.column + 1}")
        if self.field is not None:
            location.append(f"field '{self.field}'")
        if not location:
            return self.message
        return f"{', '.join(location)}: {self.message}"


class Diagnostics:
    """Accumulates diagnostics of one or more calls."""

    def __init__(self):
        self._entries: list[Diagnostic] = []

    def __call__(self, diagnostic: Diagnostic) -> None:
        self._entries.append(diagnostic)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def add(
        self,
        level: int,
        message: str,
        row: int | None = None,
        column: int | None = None,
        field: str | None = None,
    ) -> Diagnostic:
        diagnostic = Diagnostic(level, message, row, column, field)
        self(diagnostic)
        return diagnostic

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self._entries if d.level >= logging.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self._entries if logging.WARNING <= d.level < logging.ERROR]

    @property
    def has_errors(self) -> bool:
        return any(d.level >= logging.ERROR for d in self._entries)

    def clear(self) -> None:
        self._entries.clear()


DiagnosticsSink = Callable[[Diagnostic], None]


def report(
    sink: DiagnosticsSink | None,
    level: int,
    message: str,
    row: int | None = None,
    column: int | None = None,
    field: str | None = None,
) -> Diagnostic:
    """Log a diagnostic and hand it to the sink (if any)."""
    diagnostic = Diagnostic(level, message, row, column, field)
    logger.log(level, "%s", diagnostic)
    if sink is not None:
        sink(diagnostic)
    return diagnostic
