"""Exception classes shared by all sheetbind modules."""

from typing import Any


class SheetbindError(Exception):
    pass


class ContainerError(SheetbindError):
    """Raised when a file cannot be opened, parsed or written as a spreadsheet."""


class InstantiationError(SheetbindError):
    """Raised when a record type cannot be constructed without arguments."""


class SerializationError(SheetbindError):
    """Raised when a record field cannot be read or rendered for output."""

    def __init__(self, field_name: str, row: int, original_error: Exception):
        self.field_name = field_name
        self.row = row
        self.original_error = original_error
        super().__init__(
            f"Error writing field '{field_name}' of record {row}: {original_error}"
        )


class ResourceReleaseError(SheetbindError):
    """Raised when closing a workbook or its file handle fails."""


class CoercionError(SheetbindError, ValueError):
    """Raised when a cell value cannot be converted to the type of its field."""

    def __init__(self, field_name: str, value: Any, reason: str):
        self.field_name = field_name
        self.value = value
        self.reason = reason
        super().__init__(
            f"Cannot convert value '{value}' for field '{field_name}': {reason}"
        )


class DateParseError(CoercionError):
    """Raised when text in a cell does not match the configured date pattern."""
