#!/usr/bin/env python3
"""
Demo: Writing records to a sheet and reading them back

Features demonstrated:
- Marking model fields with CellMapping (column name, output order, type tag)
- Writing records; columns follow the field order
- Reading records; columns are matched by header text in any order
- Cells that cannot be converted keep the field default and show up as
  diagnostics
- Custom sheet name, start row and date format
"""

import sys
import traceback
from datetime import date
from pathlib import Path
from typing import Annotated

from openpyxl import load_workbook
from pydantic import BaseModel

from sheetbind import (
    CellMapping,
    Diagnostics,
    SheetConfig,
    TypeTag,
    read_header,
    read_records,
    write_records,
)


class Sample(BaseModel):
    """A lab sample; only mapped fields are written to the sheet."""

    sample_id: Annotated[str, CellMapping("Sample ID", order=1)] = ""
    taken: Annotated[date | None, CellMapping("Taken", order=3)] = None
    mass: Annotated[float, CellMapping("Mass (mg)", order=2)] = 0.0
    batch: Annotated[int, CellMapping("Batch", order=4, type_tag=TypeTag.SHORT)] = 0
    comment: str = ""


def create_sample_data():
    return [
        Sample(sample_id="S-001", taken=date(2024, 1, 15), mass=12.5, batch=1),
        Sample(sample_id="S-002", taken=date(2024, 1, 16), mass=8.25, batch=1),
        Sample(sample_id="S-003", mass=10.0, batch=2, comment="not exported"),
    ]


def demo_write_and_read(demo_file: Path):
    """Write records and read them back."""

    print("\n" + "=" * 50)
    print("1. Write and read records")
    print("=" * 50)

    samples = create_sample_data()
    if not write_records(samples, demo_file):
        msg = f"Cannot write {demo_file}"
        raise RuntimeError(msg)
    print(f"✓ Wrote {len(samples)} samples to {demo_file}")
    print(f"  Columns: {list(read_header(demo_file).values())}")

    imported = read_records(demo_file, Sample)
    print(f"✓ Read {len(imported)} samples")
    for sample in imported:
        print(f"  - {sample.sample_id}: taken={sample.taken!r} mass={sample.mass!r}")


def demo_diagnostics(demo_file: Path):
    """Edit a cell so that it no longer fits its field."""

    print("\n" + "=" * 50)
    print("2. Diagnostics for cells that cannot be converted")
    print("=" * 50)

    workbook = load_workbook(demo_file)
    worksheet = workbook["Sheet1"]
    worksheet["C2"] = "mid-January"  # the "Taken" column
    worksheet["B3"] = True  # the "Mass (mg)" column
    workbook.save(demo_file)

    diagnostics = Diagnostics()
    imported = read_records(demo_file, Sample, diagnostics=diagnostics)
    print(f"✓ Read {len(imported)} samples, {len(diagnostics)} diagnostic(s):")
    for diagnostic in diagnostics:
        print(f"  - {diagnostic}")


def demo_config(demo_file: Path):
    """Use another sheet name, start row and date format."""

    print("\n" + "=" * 50)
    print("3. Sheet name, start row and date format")
    print("=" * 50)

    config = SheetConfig(sheet_name="Samples", start_row=3, date_format="dd.MM.yyyy")
    write_records(create_sample_data(), demo_file, config)
    worksheet = load_workbook(demo_file)["Samples"]
    print(f"✓ Header row starts at A3: {worksheet['A3'].value!r}")
    print(f"✓ Dates are written as text: {worksheet['C4'].value!r}")

    imported = read_records(demo_file, Sample, config)
    print(f"✓ Read back {[s.taken for s in imported]}")


def main():
    """Run all demonstrations."""

    print("SHEETBIND READ/WRITE DEMO")
    print("=" * 60)

    demo_file = Path("sheetbind_demo.xlsx")
    config_demo_file = Path("sheetbind_demo_config.xlsx")

    try:
        demo_write_and_read(demo_file)
        demo_diagnostics(demo_file)
        demo_config(config_demo_file)

        print("\n✅ All demonstrations completed successfully!")
        print(f"Demo files: {demo_file.absolute()}, {config_demo_file.absolute()}")

    except Exception as e:
        print(f"\n❌ Demo failed: {e}")

        traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
