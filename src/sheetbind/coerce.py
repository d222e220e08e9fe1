"""
Conversion of dynamically typed cell values into the declared field types.

Dispatch is first on the kind of the cell, then on the type tag of the
target field:

=========================  ==================================================
Cell kind                  Result
=========================  ==================================================
blank                      ``""`` for every target type
boolean                    the boolean; only a BOOL target accepts it
error                      the error byte code (numeric/UNKNOWN targets)
formula                    the formula text without evaluation
numeric, date formatted    ``datetime`` for DATE targets, else the date
                           rendered with the configured date pattern
numeric                    narrowed number, plain decimal text for STRING,
                           the number unchanged for all other targets
text                       parsed date for DATE targets, else the text
=========================  ==================================================

Neither the cell nor the field descriptor is modified.
"""

import logging
import math
import struct
from decimal import Decimal, InvalidOperation
from typing import Any

from .cells import CellKind, CellValue
from .dates import DEFAULT_DATE_FORMAT, format_date, parse_date
from .errors import CoercionError, DateParseError
from .schema import FieldDescriptor, TypeTag

logger = logging.getLogger(__name__)

# Plain decimal notation is used inside this range, exponential outside.
_PLAIN_MIN = 1e-3
_PLAIN_MAX = 1e7

_INTEGRAL_BITS = {
    TypeTag.BYTE: 8,
    TypeTag.SHORT: 16,
}
_ERROR_CODE_TARGETS = {
    TypeTag.BYTE,
    TypeTag.SHORT,
    TypeTag.INT,
    TypeTag.FLOAT,
    TypeTag.DOUBLE,
    TypeTag.UNKNOWN,
}


def truncate(number: float | int) -> int:
    """Truncate toward zero."""
    if isinstance(number, int):
        return number
    if math.isnan(number) or math.isinf(number):
        msg = f"{number} has no integral value"
        raise ValueError(msg)
    return math.trunc(number)


def wrap_integer(number: int, bits: int) -> int:
    """Wrap an integer into the two's complement range of ``bits`` bits."""
    mask = (1 << bits) - 1
    number &= mask
    if number >= 1 << (bits - 1):
        number -= 1 << bits
    return number


def to_single_precision(number: float | int) -> float:
    """Round a number to the nearest IEEE 754 single precision value."""
    try:
        return struct.unpack("f", struct.pack("f", float(number)))[0]
    except OverflowError:
        return math.copysign(math.inf, number)


def canonical_number_text(number: float | int) -> str:
    """Render a number the way a double is canonically printed.

    Integers are printed exactly. Floats use plain decimal notation between
    1e-3 and 1e7 and exponential notation otherwise.
    """
    if isinstance(number, int):
        return str(number)
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "Infinity" if number > 0 else "-Infinity"
    magnitude = abs(number)
    if magnitude == 0 or _PLAIN_MIN <= magnitude < _PLAIN_MAX:
        return repr(number)
    text = format(Decimal(repr(number)).normalize(), "E")
    mantissa, _, exponent = text.partition("E")
    if "." not in mantissa:
        mantissa += ".0"
    return f"{mantissa}E{int(exponent)}"


def plain_number_text(number: float | int) -> str:
    """Render a number as text without exponential notation."""
    text = canonical_number_text(number)
    if "E" not in text:
        return text
    try:
        return format(Decimal(text.strip()).normalize(), "f")
    except InvalidOperation:  # pragma: no cover
        return text


class CellValueCoercer:
    """Converts cell values to the type of their target field."""

    def __init__(self, date_format: str = DEFAULT_DATE_FORMAT):
        self.date_format = date_format

    def coerce(self, cell: CellValue, descriptor: FieldDescriptor) -> Any:
        """Convert a cell value for the given field.

        Raises:
            CoercionError: The value cannot be converted to the field type.
            DateParseError: Text does not match the configured date pattern.
        """
        kind = cell.kind
        if kind is CellKind.BLANK:
            return cell.as_text()
        if kind is CellKind.BOOLEAN:
            return self._coerce_boolean(cell, descriptor)
        if kind is CellKind.ERROR:
            return self._coerce_error(cell, descriptor)
        if kind is CellKind.FORMULA:
            return cell.value
        if kind is CellKind.NUMERIC:
            if cell.is_date_formatted:
                return self._coerce_date_number(cell, descriptor)
            return self._coerce_number(cell, descriptor)
        if kind is CellKind.TEXT:
            return self._coerce_text(cell, descriptor)
        return cell.as_text()

    def _coerce_boolean(self, cell: CellValue, descriptor: FieldDescriptor) -> bool:
        if descriptor.type_tag is not TypeTag.BOOL:
            raise CoercionError(
                descriptor.name,
                cell.value,
                f"boolean cell cannot be stored in a {descriptor.type_tag.value} field",
            )
        return cell.value

    def _coerce_error(self, cell: CellValue, descriptor: FieldDescriptor) -> int:
        if descriptor.type_tag not in _ERROR_CODE_TARGETS:
            raise CoercionError(
                descriptor.name,
                cell.as_text(),
                f"error cell cannot be stored in a {descriptor.type_tag.value} field",
            )
        return cell.value

    def _coerce_date_number(self, cell: CellValue, descriptor: FieldDescriptor) -> Any:
        value = cell.date_value
        if descriptor.type_tag is TypeTag.DATE:
            return value.date() if descriptor.wants_date_only else value
        return format_date(value, self.date_format)

    def _coerce_number(self, cell: CellValue, descriptor: FieldDescriptor) -> Any:
        number = cell.value
        tag = descriptor.type_tag
        try:
            if tag is TypeTag.INT:
                return truncate(number)
            if tag in _INTEGRAL_BITS:
                return wrap_integer(truncate(number), _INTEGRAL_BITS[tag])
            if tag is TypeTag.FLOAT:
                return to_single_precision(number)
            if tag is TypeTag.STRING:
                return plain_number_text(number)
            if tag is TypeTag.DOUBLE:
                return float(number)
        except (ValueError, OverflowError) as e:
            raise CoercionError(descriptor.name, number, str(e)) from e
        if tag in (TypeTag.BOOL, TypeTag.DATE):
            raise CoercionError(
                descriptor.name,
                number,
                f"numeric cell cannot be stored in a {tag.value} field",
            )
        return number

    def _coerce_text(self, cell: CellValue, descriptor: FieldDescriptor) -> Any:
        text = cell.value
        if descriptor.type_tag is not TypeTag.DATE:
            return text
        try:
            value = parse_date(text, self.date_format)
        except ValueError as e:
            raise DateParseError(
                descriptor.name,
                text,
                f"does not match date format '{self.date_format}'",
            ) from e
        return value.date() if descriptor.wants_date_only else value
