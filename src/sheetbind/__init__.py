import logging
import logging.handlers
import os
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

try:
    __version__ = version("sheetbind")
except PackageNotFoundError:  # pragma: no cover
    # package is not installed
    __version__ = "0.0.0"

# Note that nothing is passed to getLogger to set the "root" logger
logger = logging.getLogger()


def setup_logging(loglevel: int = logging.INFO, logfile: Path | None = None):
    """
    Setup logging to console and optionally a file.

    The default loglevel is INFO.
    """
    loglevel_name = os.getenv("LOGLEVEL", "").strip().upper()
    if loglevel_name in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        loglevel = getattr(logging, loglevel_name, logging.INFO)

    # Apply constraints. CRITICAL=FATAL=50 is the maximum, NOTSET=0 the minimum.
    loglevel = min(logging.FATAL, max(loglevel, logging.NOTSET))

    # Setup handler for logging to console
    logging.basicConfig(level=loglevel, format="%(levelname)-8s|%(message)s")

    if logfile is not None:
        # Setup handler for logging to file
        fh = logging.handlers.RotatingFileHandler(
            logfile, maxBytes=100000, backupCount=5
        )
        fh.setLevel(loglevel)
        fh_formatter = logging.Formatter(
            fmt="%(asctime)s|%(name)-20s|%(levelname)-8s|%(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        fh.setFormatter(fh_formatter)
        logger.addHandler(fh)


from sheetbind.api import (  # noqa: E402
    SheetBinder,
    read_header,
    read_records,
    write_records,
)
from sheetbind.config import SheetConfig, load_config  # noqa: E402
from sheetbind.diagnostics import Diagnostic, Diagnostics  # noqa: E402
from sheetbind.schema import (  # noqa: E402
    CellMapping,
    FieldDescriptor,
    TypeTag,
    derive_schema,
)

__all__ = [
    "CellMapping",
    "Diagnostic",
    "Diagnostics",
    "FieldDescriptor",
    "SheetBinder",
    "SheetConfig",
    "TypeTag",
    "__version__",
    "derive_schema",
    "load_config",
    "read_header",
    "read_records",
    "setup_logging",
    "write_records",
]
