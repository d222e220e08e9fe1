"""Configuration of sheet reading and writing."""

import logging
import sys
from pathlib import Path
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sheetbind.dates import DEFAULT_DATE_FORMAT, to_strftime
from sheetbind.errors import SheetbindError

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = logging.getLogger(__name__)

DEFAULT_SHEET_NAME = "Sheet1"
CONFIG_TABLE = "sheetbind"


class SheetConfig(BaseModel):
    """Options for one read or write call.

    ``start_row`` is the 1-based row index of the header row; data rows
    follow directly below it.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    start_row: Annotated[int, Field(ge=1)] = 1
    sheet_name: Annotated[str, Field(min_length=1)] = DEFAULT_SHEET_NAME
    date_format: Annotated[str, Field(min_length=1)] = DEFAULT_DATE_FORMAT

    @field_validator("date_format")
    @classmethod
    def check_date_format(cls, value):
        # raises ValueError for unknown pattern letters
        to_strftime(value)
        return value

    @property
    def header_row_index(self) -> int:
        """Zero-based index of the header row."""
        return self.start_row - 1


def load_config(config_file: Path | str) -> SheetConfig:
    """Load options from the [sheetbind] table of a TOML file.

    A file without that table yields the default configuration.
    """
    config_file = Path(config_file)
    if not config_file.exists():
        msg = f"Config file not found at: {config_file}"
        raise SheetbindError(msg)

    with config_file.open("rb") as fp:
        conf = tomllib.load(fp)

    section = conf.get(CONFIG_TABLE, {})
    if not section:
        logger.debug("No [%s] table in %s; using defaults.", CONFIG_TABLE, config_file)
    return SheetConfig(**section)
