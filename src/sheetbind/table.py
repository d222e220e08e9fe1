"""
Table layout: a header row naming the columns, one record per row below it.

This module contains the three table stages:
- Header resolution (header texts -> field descriptors)
- Row materialization (cells of a data row -> one record)
- Column serialization (records -> grid of texts with a header row)
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import date
from enum import Enum
from typing import Any

from pydantic import BaseModel

from .cells import CellKind, CellValue
from .coerce import CellValueCoercer, plain_number_text
from .dates import DEFAULT_DATE_FORMAT, format_date
from .diagnostics import DiagnosticsSink, report
from .errors import (
    CoercionError,
    DateParseError,
    InstantiationError,
    SerializationError,
)
from .schema import FieldDescriptor, TypeTag, descriptors_by_name, output_order
from .workbook import Grid, RowCells

logger = logging.getLogger(__name__)

HeaderMap = dict[int, str]
ResolvedColumnMap = dict[int, FieldDescriptor | None]

# Blank cells are only stored in fields that can hold an empty string.
_BLANK_TARGETS = {TypeTag.STRING, TypeTag.UNKNOWN}


def header_text(cell: CellValue) -> str | None:
    """Text of a header cell; None for blank cells."""
    if cell.kind is CellKind.BLANK:
        return None
    if cell.kind in (CellKind.TEXT, CellKind.FORMULA):
        text = cell.value
    elif cell.kind is CellKind.NUMERIC and not cell.is_date_formatted:
        text = plain_number_text(cell.value)
    else:
        text = cell.as_text()
    return text or None


def read_header_map(header_cells: RowCells | None) -> HeaderMap:
    """Map column positions to the header texts of a header row."""
    headers: HeaderMap = {}
    for column, cell in header_cells or []:
        text = header_text(cell)
        if text is not None:
            headers[column] = text
    return headers


class HeaderResolver:
    """Resolves header texts to field descriptors by exact name match."""

    def __init__(self, schema: list[FieldDescriptor]):
        self.schema = schema
        self._by_name = descriptors_by_name(schema)

    def resolve_map(self, headers: HeaderMap) -> ResolvedColumnMap:
        resolved: ResolvedColumnMap = {}
        for column, name in headers.items():
            descriptor = self._by_name.get(name)
            if descriptor is None:
                logger.debug('Column %d "%s" has no matching field.', column, name)
            resolved[column] = descriptor
        return resolved

    def resolve(self, header_cells: RowCells | None) -> ResolvedColumnMap:
        """Build the column -> descriptor map from the cells of a header row."""
        return self.resolve_map(read_header_map(header_cells))

    def missing_fields(self, resolved: ResolvedColumnMap) -> list[FieldDescriptor]:
        """Descriptors that no column of the header row maps to."""
        found = {id(d) for d in resolved.values() if d is not None}
        return [d for d in self.schema if id(d) not in found]


class RowMaterializer:
    """Creates one record per data row using a resolved column map."""

    def __init__(
        self,
        resolved_map: ResolvedColumnMap,
        record_factory: Callable[[], BaseModel],
        coercer: CellValueCoercer | None = None,
        diagnostics: DiagnosticsSink | None = None,
    ):
        self.resolved_map = resolved_map
        self.record_factory = record_factory
        self.coercer = coercer or CellValueCoercer()
        self.diagnostics = diagnostics

    def new_record(self) -> BaseModel:
        try:
            return self.record_factory()
        except Exception as e:
            name = getattr(self.record_factory, "__name__", repr(self.record_factory))
            msg = f"Cannot create an empty {name} record: {e}"
            raise InstantiationError(msg) from e

    def materialize_row(
        self, row_index: int, cells: RowCells | None
    ) -> tuple[BaseModel, list[CoercionError]]:
        """Populate a fresh record from the cells of one row.

        Cells that cannot be converted leave their field at its default and
        are returned as errors; the record is always returned.
        """
        record = self.new_record()
        errors: list[CoercionError] = []
        for column, cell in cells or []:
            descriptor = self.resolved_map.get(column)
            if descriptor is None:
                continue
            if (
                cell.kind is CellKind.BLANK
                and descriptor.type_tag not in _BLANK_TARGETS
            ):
                continue
            try:
                value = self.coercer.coerce(cell, descriptor)
                self._assign(descriptor, record, value)
            except CoercionError as e:
                errors.append(e)
                level = (
                    logging.DEBUG if isinstance(e, DateParseError) else logging.WARNING
                )
                report(
                    self.diagnostics, level, str(e), row_index, column, descriptor.name
                )
        return record, errors

    @staticmethod
    def _assign(descriptor: FieldDescriptor, record: BaseModel, value: Any) -> None:
        try:
            descriptor.set(record, value)
        except (ValueError, TypeError, AttributeError) as e:
            raise CoercionError(descriptor.name, value, str(e)) from e

    def materialize(
        self, rows: Iterable[tuple[int, RowCells | None]]
    ) -> list[BaseModel]:
        """Materialize records for (row index, cells) pairs in the given order."""
        records = []
        for row_index, cells in rows:
            record, _errors = self.materialize_row(row_index, cells)
            records.append(record)
        return records


class ColumnSerializer:
    """Renders records as a grid of texts; row 0 holds the column names."""

    def __init__(
        self, schema: list[FieldDescriptor], date_format: str = DEFAULT_DATE_FORMAT
    ):
        self.columns = output_order(schema)
        self.date_format = date_format

    def header_row(self) -> list[str]:
        return [descriptor.display_name for descriptor in self.columns]

    def render(self, value: Any) -> str:
        """Text representation of a field value."""
        if value is None:
            return ""
        if isinstance(value, Enum):
            return str(value.value)
        if isinstance(value, date):
            return format_date(value, self.date_format)
        return str(value)

    def render_record(self, row: int, record: BaseModel) -> list[str]:
        texts = []
        for descriptor in self.columns:
            try:
                texts.append(self.render(descriptor.get(record)))
            except Exception as e:
                raise SerializationError(descriptor.name, row, e) from e
        return texts

    def serialize(self, records: Sequence[BaseModel]) -> Grid:
        """Build the grid for a non-empty sequence of records.

        Raises:
            ValueError: No records given.
            SerializationError: A field value cannot be read or rendered.
        """
        if not records:
            msg = "No data provided for export"
            raise ValueError(msg)
        grid: Grid = [self.header_row()]
        for row, record in enumerate(records):
            grid.append(self.render_record(row, record))
        return grid
