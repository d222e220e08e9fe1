"""
Adapters for the spreadsheet containers.

The zip-based container (xlsx) is read and written with openpyxl, the legacy
binary container (xls) is read with xlrd and written with xlwt. The container
is selected by the file suffix. Readers translate every cell into a
``CellValue``; the writers take a grid of texts.
"""

import logging
import os
import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import IO

import xlrd
import xlwt
from openpyxl import Workbook, load_workbook
from openpyxl.utils.datetime import to_excel

from .cells import CellValue
from .errors import ContainerError, ResourceReleaseError

logger = logging.getLogger(__name__)

XLSX = "xlsx"
XLS = "xls"

READ_FILE_ENDINGS = {".xlsx": XLSX, ".xlsm": XLSX, ".xls": XLS}
# macro-enabled workbooks are read only
WRITE_FILE_ENDINGS = {".xlsx": XLSX, ".xls": XLS}

# Day zero of time-only values in the 1900 date system
_TIME_ONLY_DAY = date(1899, 12, 31)
_EXCEL_DAY_ZERO = datetime(1899, 12, 30)

Grid = list[list[str]]
RowCells = list[tuple[int, CellValue]]


def container_for(filepath: Path, endings: dict[str, str]) -> str:
    """Return the container type for the suffix of a file."""
    container = endings.get(filepath.suffix.lower())
    if container is None:
        msg = (
            f'Unsupported file extension "{filepath.suffix}" of {filepath}; '
            f"expected one of {', '.join(endings)}"
        )
        raise ContainerError(msg)
    return container


class Sheet(ABC):
    """A single worksheet of an open workbook."""

    def __init__(self, name: str):
        self.name = name

    @property
    @abstractmethod
    def last_row_index(self) -> int:
        """Zero-based index of the last row (-1 for an empty sheet)."""

    @abstractmethod
    def row(self, index: int) -> RowCells | None:
        """Cells of a row as (zero-based column, value) pairs.

        Returns None if the row index is outside the sheet.
        """


class WorkbookReader(ABC):
    """Read access to a workbook file.

    The file handle is owned by the reader and released by ``close()``.
    """

    def __init__(self, filepath: Path):
        self.filepath = filepath
        self._handle: IO[bytes] | None = None
        try:
            self._handle = filepath.open("rb")
            self._load(self._handle)
        except ContainerError:
            self._close_handle()
            raise
        except Exception as e:
            self._close_handle()
            msg = f"Cannot read {filepath} as spreadsheet: {e}"
            raise ContainerError(msg) from e

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @abstractmethod
    def _load(self, handle: IO[bytes]) -> None:
        """Parse the workbook from an open binary file."""

    @abstractmethod
    def sheet_names(self) -> list[str]:
        """Names of all worksheets."""

    @abstractmethod
    def get_sheet(self, name: str) -> Sheet | None:
        """Look up a sheet by name; None if there is no such sheet."""

    def _release(self) -> None:
        """Release library resources held by the parsed workbook."""

    def _close_handle(self) -> None:
        if self._handle is not None:
            handle, self._handle = self._handle, None
            handle.close()

    def close(self) -> None:
        """Release the workbook and close the file.

        Raises:
            ResourceReleaseError: If closing fails.
        """
        try:
            self._release()
            self._close_handle()
        except Exception as e:
            msg = f"Error closing {self.filepath}: {e}"
            raise ResourceReleaseError(msg) from e


# openpyxl (xlsx)
def _date_value(value: datetime | date | time | timedelta) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, time):
        return datetime.combine(_TIME_ONLY_DAY, value)
    return _EXCEL_DAY_ZERO + value


def openpyxl_cell_value(cell, epoch=None) -> CellValue:
    """Translate an openpyxl cell into a CellValue."""
    value = cell.value
    if value is None:
        return CellValue.blank()
    data_type = cell.data_type
    if data_type == "b":
        return CellValue.boolean(value)
    if data_type == "e":
        return CellValue.error(str(value))
    if data_type == "f":
        # array formulas are objects with the formula in .text
        return CellValue.formula(str(getattr(value, "text", value)))
    if isinstance(value, (datetime, date, time, timedelta)):
        number = to_excel(value, epoch) if epoch is not None else to_excel(value)
        return CellValue.numeric(number, _date_value(value))
    if data_type == "n" and isinstance(value, (int, float)):
        return CellValue.numeric(value)
    return CellValue.text(str(value))


class OpenpyxlSheet(Sheet):
    def __init__(self, worksheet, epoch=None):
        super().__init__(worksheet.title)
        self.worksheet = worksheet
        self.epoch = epoch

    @property
    def last_row_index(self) -> int:
        return self.worksheet.max_row - 1

    def row(self, index: int) -> RowCells | None:
        if index < 0 or index > self.last_row_index:
            return None
        cells = []
        for row in self.worksheet.iter_rows(min_row=index + 1, max_row=index + 1):
            for cell in row:
                cells.append((cell.column - 1, openpyxl_cell_value(cell, self.epoch)))
        return cells


class OpenpyxlWorkbookReader(WorkbookReader):
    def _load(self, handle: IO[bytes]) -> None:
        # keep formulas as written instead of their cached results
        self.workbook = load_workbook(handle, data_only=False)

    def sheet_names(self) -> list[str]:
        return list(self.workbook.sheetnames)

    def get_sheet(self, name: str) -> Sheet | None:
        if name not in self.workbook.sheetnames:
            return None
        return OpenpyxlSheet(
            self.workbook[name], getattr(self.workbook, "epoch", None)
        )

    def _release(self) -> None:
        self.workbook.close()


# xlrd (xls)
class XlrdSheet(Sheet):
    def __init__(self, sheet, datemode: int):
        super().__init__(sheet.name)
        self.sheet = sheet
        self.datemode = datemode

    @property
    def last_row_index(self) -> int:
        return self.sheet.nrows - 1

    def row(self, index: int) -> RowCells | None:
        if index < 0 or index > self.last_row_index:
            return None
        cells = []
        for column, cell in enumerate(self.sheet.row(index)):
            if cell.ctype == xlrd.XL_CELL_EMPTY:
                continue
            cells.append((column, self._cell_value(cell)))
        return cells

    def _cell_value(self, cell) -> CellValue:
        ctype = cell.ctype
        if ctype == xlrd.XL_CELL_BLANK:
            return CellValue.blank()
        if ctype == xlrd.XL_CELL_BOOLEAN:
            return CellValue.boolean(bool(cell.value))
        if ctype == xlrd.XL_CELL_ERROR:
            return CellValue.error(int(cell.value))
        if ctype == xlrd.XL_CELL_DATE:
            try:
                decoded = xlrd.xldate.xldate_as_datetime(cell.value, self.datemode)
            except xlrd.xldate.XLDateError:
                logger.debug("Cannot decode %s as date; using number.", cell.value)
                return CellValue.numeric(cell.value)
            return CellValue.numeric(cell.value, decoded)
        if ctype == xlrd.XL_CELL_NUMBER:
            return CellValue.numeric(cell.value)
        return CellValue.text(str(cell.value))


class XlrdWorkbookReader(WorkbookReader):
    def _load(self, handle: IO[bytes]) -> None:
        self.book = xlrd.open_workbook(
            file_contents=handle.read(), formatting_info=True
        )

    def sheet_names(self) -> list[str]:
        return self.book.sheet_names()

    def get_sheet(self, name: str) -> Sheet | None:
        if name not in self.book.sheet_names():
            return None
        return XlrdSheet(self.book.sheet_by_name(name), self.book.datemode)

    def _release(self) -> None:
        self.book.release_resources()


def open_workbook(filepath: Path | str) -> WorkbookReader:
    """Open a workbook for reading; the container is chosen by file suffix.

    Raises:
        ContainerError: Unsupported suffix, missing or unreadable file.
    """
    filepath = Path(filepath)
    container = container_for(filepath, READ_FILE_ENDINGS)
    logger.debug("Opening %s workbook %s", container, filepath)
    if container == XLS:
        return XlrdWorkbookReader(filepath)
    return OpenpyxlWorkbookReader(filepath)


# Writers
def _write_xlsx(
    handle: IO[bytes], sheet_name: str, grid: Sequence[Sequence[str]], first_row: int
):
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = sheet_name
    for row_idx, row in enumerate(grid, start=first_row + 1):
        for col_idx, text in enumerate(row, start=1):
            cell = worksheet.cell(row=row_idx, column=col_idx)
            cell.value = text
            if text.startswith("="):
                # store as text, not as formula
                cell.data_type = "s"
    workbook.save(handle)


def _write_xls(
    handle: IO[bytes], sheet_name: str, grid: Sequence[Sequence[str]], first_row: int
):
    workbook = xlwt.Workbook(encoding="utf-8")
    worksheet = workbook.add_sheet(sheet_name)
    for row_idx, row in enumerate(grid, start=first_row):
        for col_idx, text in enumerate(row):
            # empty texts stay empty cells as in the xlsx writer
            if text:
                worksheet.write(row_idx, col_idx, text)
    workbook.save(handle)


_WRITERS = {XLSX: _write_xlsx, XLS: _write_xls}


def _open_temp(filepath: Path) -> tuple[IO[bytes], Path]:
    """Create a temporary file next to ``filepath`` and open it for writing."""
    # file mode follows the umask
    temp_path = filepath.with_name(f".{filepath.name}.{uuid.uuid4().hex[:8]}.tmp")
    return temp_path.open("xb"), temp_path


def _discard(handle: IO[bytes], temp_path: Path) -> None:
    try:
        handle.close()
    except OSError as e:
        logger.debug("Error closing %s: %s", temp_path, e)
    temp_path.unlink(missing_ok=True)


def write_workbook(
    filepath: Path | str,
    sheet_name: str,
    grid: Sequence[Sequence[str]],
    first_row: int = 0,
) -> None:
    """Write a grid of texts to a new workbook with a single sheet.

    The grid starts at the zero-based row ``first_row``. The workbook is
    written to a temporary file that replaces ``filepath`` only after it was
    written and closed completely; on failure an existing file is unchanged.

    Raises:
        ContainerError: Unsupported suffix or the workbook cannot be written.
        ResourceReleaseError: The written file cannot be closed.
    """
    filepath = Path(filepath)
    container = container_for(filepath, WRITE_FILE_ENDINGS)
    logger.debug("Writing %d row(s) to %s workbook %s", len(grid), container, filepath)
    try:
        handle, temp_path = _open_temp(filepath)
    except OSError as e:
        msg = f"Cannot create {filepath}: {e}"
        raise ContainerError(msg) from e
    try:
        _WRITERS[container](handle, sheet_name, grid, first_row)
    except Exception as e:
        _discard(handle, temp_path)
        msg = f"Cannot write {filepath}: {e}"
        raise ContainerError(msg) from e
    try:
        handle.close()
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        msg = f"Error closing {filepath}; nothing written: {e}"
        raise ResourceReleaseError(msg) from e
    try:
        os.replace(temp_path, filepath)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        msg = f"Cannot replace {filepath}: {e}"
        raise ContainerError(msg) from e
