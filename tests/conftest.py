# Common pytest fixtures for all test modules
import re
import zipfile
from datetime import datetime
from pathlib import Path

import pytest
import xlrd
import xlwt
from openpyxl import Workbook

from sheetbind.workbook import _open_temp


def make_xlsx(filepath: Path, rows: list[list], sheet_name: str = "Sheet1") -> Path:
    """Write rows (lists of cell values, None for no value) to a new xlsx file."""
    workbook = Workbook()
    worksheet = workbook.active
    worksheet.title = sheet_name
    for row_idx, row in enumerate(rows, start=1):
        for col_idx, value in enumerate(row, start=1):
            if value is not None:
                worksheet.cell(row=row_idx, column=col_idx, value=value)
    workbook.save(filepath)
    return filepath


def make_xls(filepath: Path, rows: list[list], sheet_name: str = "Sheet1") -> Path:
    """Write rows to a new xls file; datetimes get a date number format."""
    date_style = xlwt.easyxf(num_format_str="YYYY-MM-DD HH:MM:SS")
    workbook = xlwt.Workbook()
    worksheet = workbook.add_sheet(sheet_name)
    for row_idx, row in enumerate(rows):
        for col_idx, value in enumerate(row):
            if isinstance(value, datetime):
                worksheet.write(row_idx, col_idx, value, date_style)
            elif value is not None:
                worksheet.write(row_idx, col_idx, value)
    workbook.save(str(filepath))
    return filepath


def set_exact_number(filepath: Path, ref: str, digits: str) -> Path:
    """Store ``digits`` verbatim as value of the numeric cell ``ref``.

    openpyxl writes large integers with float precision, so cells holding
    exact integers beyond 2**53 are patched into the sheet XML.
    """
    sheet_xml = "xl/worksheets/sheet1.xml"
    with zipfile.ZipFile(filepath) as archive:
        entries = {name: archive.read(name) for name in archive.namelist()}
    xml, count = re.subn(
        rf'(<c [^>]*r="{ref}"[^>]*>)<v>[^<]*</v>',
        rf"\g<1><v>{digits}</v>",
        entries[sheet_xml].decode("utf-8"),
    )
    assert count == 1
    entries[sheet_xml] = xml.encode("utf-8")
    with zipfile.ZipFile(filepath, "w", zipfile.ZIP_DEFLATED) as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return filepath


class FakeXlrdSheet:
    """Stands in for xlrd.sheet.Sheet with rows of xlrd cells."""

    def __init__(self, name, rows):
        self.name = name
        self.rows = rows

    @property
    def nrows(self):
        return len(self.rows)

    def row(self, index):
        return self.rows[index]


class FakeXlrdBook:
    """Stands in for the xlrd.Book of a legacy xls file."""

    datemode = 0

    def __init__(self, sheets):
        self.sheets = sheets
        self.released = False

    def sheet_names(self):
        return list(self.sheets)

    def sheet_by_name(self, name):
        return self.sheets[name]

    def release_resources(self):
        self.released = True


PERSON_ROWS = [
    ["Name", "Age", "Member", "Joined", "Notes"],
    ["Alice", 30, True, datetime(2024, 1, 15), "likes tea"],
    ["Bob", 41.7, False, "2023-05-02 08:00:00", None],
]


@pytest.fixture
def person_xlsx(tmp_path):
    return make_xlsx(tmp_path / "persons.xlsx", PERSON_ROWS)


@pytest.fixture
def person_xls(tmp_path):
    return make_xls(tmp_path / "persons.xls", PERSON_ROWS)


@pytest.fixture
def xls_book(monkeypatch):
    """Let xlrd return an empty FakeXlrdBook sheet for any xls file.

    Used for cell kinds that xlwt does not write, such as error cells.
    """
    book = FakeXlrdBook({"Sheet1": FakeXlrdSheet("Sheet1", [])})

    def open_workbook(*args, **kwargs):
        return book

    monkeypatch.setattr(xlrd, "open_workbook", open_workbook)
    return book


@pytest.fixture
def fake_xls(tmp_path, xls_book):
    path = tmp_path / "fake.xls"
    path.write_bytes(b"\xd0\xcf\x11\xe0")
    return path


@pytest.fixture
def xlsx_factory(tmp_path):
    """Create xlsx files in the temp dir: factory(rows, name=..., sheet_name=...)."""

    def factory(rows, name="data.xlsx", sheet_name="Sheet1"):
        return make_xlsx(tmp_path / name, rows, sheet_name)

    return factory


class FailingClose:
    """File wrapper whose close() fails after closing the file."""

    def __init__(self, handle):
        self.handle = handle

    def __getattr__(self, name):
        return getattr(self.handle, name)

    def close(self):
        self.handle.close()
        msg = "disk full"
        raise OSError(msg)


@pytest.fixture
def failing_close(monkeypatch):
    """Let closing the file written by write_workbook fail."""

    def open_failing_temp(filepath):
        handle, temp_path = _open_temp(filepath)
        return FailingClose(handle), temp_path

    monkeypatch.setattr("sheetbind.workbook._open_temp", open_failing_temp)
