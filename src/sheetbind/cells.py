"""Dynamically typed cell values as reported by the workbook readers."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class CellKind(Enum):
    BLANK = "blank"
    BOOLEAN = "boolean"
    ERROR = "error"
    FORMULA = "formula"
    NUMERIC = "numeric"
    TEXT = "text"


# Error codes as stored in the legacy binary container
ERROR_CODES = {
    "#NULL!": 0x00,
    "#DIV/0!": 0x07,
    "#VALUE!": 0x0F,
    "#REF!": 0x17,
    "#NAME?": 0x1D,
    "#NUM!": 0x24,
    "#N/A": 0x2A,
}
ERROR_TEXTS = {code: text for text, code in ERROR_CODES.items()}


@dataclass(frozen=True)
class CellValue:
    """A raw cell value tagged with its kind.

    For numeric cells ``value`` is the number and ``date_value`` the decoded
    date if the cell has a date number format.
    """

    kind: CellKind
    value: Any = None
    date_value: datetime | None = None

    @classmethod
    def blank(cls) -> "CellValue":
        return cls(CellKind.BLANK, "")

    @classmethod
    def boolean(cls, value: bool) -> "CellValue":
        return cls(CellKind.BOOLEAN, bool(value))

    @classmethod
    def error(cls, code: int | str) -> "CellValue":
        if isinstance(code, str):
            text = code.strip().upper()
            if text not in ERROR_CODES:
                logger.debug('Unknown error value "%s"; using #VALUE!', code)
            code = ERROR_CODES.get(text, ERROR_CODES["#VALUE!"])
        return cls(CellKind.ERROR, code)

    @classmethod
    def formula(cls, expression: str) -> "CellValue":
        if expression.startswith("="):
            expression = expression[1:]
        return cls(CellKind.FORMULA, expression)

    @classmethod
    def numeric(
        cls, number: int | float, date_value: datetime | None = None
    ) -> "CellValue":
        return cls(CellKind.NUMERIC, number, date_value)

    @classmethod
    def text(cls, value: str) -> "CellValue":
        return cls(CellKind.TEXT, value)

    @property
    def is_date_formatted(self) -> bool:
        return self.kind is CellKind.NUMERIC and self.date_value is not None

    def as_text(self) -> str:
        """Default string rendering of the cell."""
        if self.kind is CellKind.BLANK or self.value is None:
            return ""
        if self.kind is CellKind.BOOLEAN:
            return "TRUE" if self.value else "FALSE"
        if self.kind is CellKind.ERROR:
            return ERROR_TEXTS.get(self.value, "#VALUE!")
        if self.kind is CellKind.NUMERIC and self.is_date_formatted:
            return self.date_value.isoformat(sep=" ")
        return str(self.value)
