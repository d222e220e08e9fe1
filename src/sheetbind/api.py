"""
Public API for reading records from and writing records to spreadsheets.

The entry points never raise for problems with the file or its content:
call-level failures are logged, sent to the diagnostics sink and reported as
an empty result (reading) or ``False`` (writing). Problems with single cells
leave the affected field at its default and are sent to the sink as well.
"""

import logging
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel

from .coerce import CellValueCoercer
from .config import SheetConfig
from .diagnostics import DiagnosticsSink, report
from .errors import (
    ContainerError,
    InstantiationError,
    ResourceReleaseError,
    SerializationError,
)
from .schema import derive_schema
from .table import (
    ColumnSerializer,
    HeaderMap,
    HeaderResolver,
    RowMaterializer,
    read_header_map,
)
from .workbook import WorkbookReader, open_workbook, write_workbook

logger = logging.getLogger(__name__)


class SheetBinder:
    """Reads and writes records of a Pydantic model type from/to one sheet."""

    def __init__(
        self,
        config: SheetConfig | None = None,
        diagnostics: DiagnosticsSink | None = None,
    ):
        self.config = config or SheetConfig()
        self.diagnostics = diagnostics

    def _report(self, level: int, message: str, **location) -> None:
        report(self.diagnostics, level, message, **location)

    def _open(self, filepath: Path) -> WorkbookReader | None:
        try:
            return open_workbook(filepath)
        except ContainerError as e:
            self._report(logging.ERROR, str(e))
            return None

    def _close(self, reader: WorkbookReader) -> None:
        try:
            reader.close()
        except ResourceReleaseError as e:
            self._report(logging.ERROR, str(e))

    def parse(
        self, filepath: Path | str, model_class: type[BaseModel]
    ) -> list[BaseModel]:
        """Read one record per data row of the configured sheet.

        Returns an empty list if the file cannot be read, the sheet does not
        exist, the header row is beyond the end of the sheet or the model
        cannot be instantiated without arguments.
        """
        filepath = Path(filepath)
        schema = derive_schema(model_class)
        config = self.config

        reader = self._open(filepath)
        if reader is None:
            return []
        try:
            sheet = reader.get_sheet(config.sheet_name)
            if sheet is None:
                self._report(
                    logging.WARNING,
                    f'Sheet "{config.sheet_name}" not found in {filepath}',
                )
                return []

            header_row = config.header_row_index
            if header_row > sheet.last_row_index:
                self._report(
                    logging.WARNING,
                    f"Start row {config.start_row} is beyond the last row "
                    f'({sheet.last_row_index + 1}) of sheet "{sheet.name}"',
                )
                return []

            resolver = HeaderResolver(schema)
            resolved = resolver.resolve(sheet.row(header_row))
            for descriptor in resolver.missing_fields(resolved):
                logger.debug(
                    'No column named "%s" for field "%s".',
                    descriptor.display_name,
                    descriptor.name,
                )

            materializer = RowMaterializer(
                resolved,
                model_class,
                CellValueCoercer(config.date_format),
                self.diagnostics,
            )
            rows = (
                (row_index, sheet.row(row_index))
                for row_index in range(header_row + 1, sheet.last_row_index + 1)
            )
            records = materializer.materialize(rows)
        except InstantiationError as e:
            self._report(logging.ERROR, str(e))
            return []
        finally:
            self._close(reader)

        logger.debug(
            'Read %d %s record(s) from sheet "%s" of %s',
            len(records),
            model_class.__name__,
            config.sheet_name,
            filepath,
        )
        return records

    def read_header(self, filepath: Path | str) -> HeaderMap:
        """Return the header texts of the configured sheet by column position.

        Returns an empty mapping if the file or sheet cannot be read.
        """
        filepath = Path(filepath)
        reader = self._open(filepath)
        if reader is None:
            return {}
        try:
            sheet = reader.get_sheet(self.config.sheet_name)
            if sheet is None:
                self._report(
                    logging.WARNING,
                    f'Sheet "{self.config.sheet_name}" not found in {filepath}',
                )
                return {}
            return read_header_map(sheet.row(self.config.header_row_index))
        finally:
            self._close(reader)

    def create_excel(self, filepath: Path | str, records: Sequence[BaseModel]) -> bool:
        """Write records to a new workbook with the configured sheet name.

        The header row is written to the configured start row. Returns True
        only if all records were written; an existing file is left unchanged
        otherwise.
        """
        filepath = Path(filepath)
        if not records:
            self._report(
                logging.INFO, f"No records given; nothing written to {filepath}"
            )
            return False

        model_class = type(records[0])
        schema = derive_schema(model_class)
        if not schema:
            self._report(
                logging.ERROR,
                f"{model_class.__name__} has no mapped fields; nothing written",
            )
            return False

        serializer = ColumnSerializer(schema, self.config.date_format)
        try:
            grid = serializer.serialize(records)
            write_workbook(
                filepath, self.config.sheet_name, grid, self.config.header_row_index
            )
        except (SerializationError, ContainerError, ResourceReleaseError) as e:
            self._report(logging.ERROR, str(e))
            return False

        logger.debug(
            'Wrote %d record(s) to sheet "%s" of %s',
            len(records),
            self.config.sheet_name,
            filepath,
        )
        return True


def read_records(
    filepath: Path | str,
    model_class: type[BaseModel],
    config: SheetConfig | None = None,
    diagnostics: DiagnosticsSink | None = None,
) -> list[BaseModel]:
    """Read records from a spreadsheet file.

    Args:
        filepath: Path to the xlsx/xlsm/xls file
        model_class: Pydantic model class with CellMapping-annotated fields
        config: Optional configuration (sheet name, start row, date format)
        diagnostics: Optional sink receiving row/cell-level diagnostics

    Returns:
        List of model instances, one per data row (empty on failure)
    """
    return SheetBinder(config, diagnostics).parse(filepath, model_class)


def write_records(
    records: Sequence[BaseModel],
    filepath: Path | str,
    config: SheetConfig | None = None,
    diagnostics: DiagnosticsSink | None = None,
) -> bool:
    """Write records to a new spreadsheet file.

    Args:
        records: Non-empty sequence of model instances of the same type
        filepath: Path of the xlsx/xls file to create or replace
        config: Optional configuration (sheet name, start row, date format)
        diagnostics: Optional sink receiving diagnostics

    Returns:
        True if the file was written, False otherwise
    """
    return SheetBinder(config, diagnostics).create_excel(filepath, records)


def read_header(
    filepath: Path | str,
    config: SheetConfig | None = None,
    diagnostics: DiagnosticsSink | None = None,
) -> HeaderMap:
    """Read the header row of a sheet as {column position: header text}."""
    return SheetBinder(config, diagnostics).read_header(filepath)
