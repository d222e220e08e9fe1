"""Command line interface for sheetbind with subcommands."""

import argparse
import importlib
import logging
import sys
import textwrap
from pathlib import Path

from pydantic import BaseModel, ValidationError

from sheetbind import __version__, setup_logging
from sheetbind.api import SheetBinder
from sheetbind.config import SheetConfig, load_config
from sheetbind.diagnostics import Diagnostics
from sheetbind.errors import SheetbindError

logger = logging.getLogger(__name__)


def process_common_options(args, raw_args):
    # set up logging
    loglevel = logging.INFO + (args.quieter - args.verboser) * 10
    logfile = args.logfile
    if logfile is None:
        setup_logging(loglevel)
    else:
        logfile.parents[0].mkdir(exist_ok=True, parents=True)
        setup_logging(loglevel, logfile)

    logger.debug("Executing cmd: sheetbind %s", " ".join(raw_args))

    # load config and apply overrides from the command line
    if args.config is not None:
        config = load_config(args.config)
    else:
        config = SheetConfig()
    overrides = {
        "sheet_name": args.sheet,
        "start_row": args.start_row,
        "date_format": args.date_format,
    }
    overrides = {key: value for key, value in overrides.items() if value is not None}
    try:
        args.sheet_config = SheetConfig(**(config.model_dump() | overrides))
    except ValidationError as e:
        msg = f"Invalid option: {e}"
        raise SheetbindError(msg) from e

    if not args.FILE.exists():
        msg = "File not found: %s"
        logger.error(msg, args.FILE)
        raise SheetbindError(msg % args.FILE)


def import_model(model_ref: str) -> type[BaseModel]:
    """Import a model class given as "package.module:ClassName"."""
    module_name, _, class_name = model_ref.partition(":")
    if not module_name or not class_name:
        msg = f'Model must be given as "module:ClassName", got "{model_ref}"'
        raise SheetbindError(msg)
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        msg = f'Cannot import module "{module_name}": {e}'
        raise SheetbindError(msg) from e
    model_class = getattr(module, class_name, None)
    if not (isinstance(model_class, type) and issubclass(model_class, BaseModel)):
        msg = f'"{model_ref}" is not a pydantic model class'
        raise SheetbindError(msg)
    return model_class


def _log_summary(diagnostics: Diagnostics) -> None:
    if diagnostics.warnings or diagnostics.errors:
        logger.info(
            "%d warning(s), %d error(s).",
            len(diagnostics.warnings),
            len(diagnostics.errors),
        )


def headers_cmd(args):
    diagnostics = Diagnostics()
    binder = SheetBinder(args.sheet_config, diagnostics)
    headers = binder.read_header(args.FILE)
    if diagnostics.has_errors:
        msg = "Cannot read header row of %s"
        raise SheetbindError(msg % args.FILE)
    for column, name in sorted(headers.items()):
        print(f"{column}\t{name}")


def read_cmd(args):
    model_class = import_model(args.model)
    diagnostics = Diagnostics()
    binder = SheetBinder(args.sheet_config, diagnostics)
    records = binder.parse(args.FILE, model_class)
    if diagnostics.has_errors:
        msg = "Cannot read records from %s"
        raise SheetbindError(msg % args.FILE)
    for record in records:
        print(record.model_dump_json())
    _log_summary(diagnostics)


def copy_cmd(args):
    model_class = import_model(args.model)
    diagnostics = Diagnostics()
    binder = SheetBinder(args.sheet_config, diagnostics)
    records = binder.parse(args.FILE, model_class)
    if diagnostics.has_errors:
        msg = "Cannot read records from %s"
        raise SheetbindError(msg % args.FILE)
    if not binder.create_excel(args.TARGET, records):
        msg = "Nothing written to %s"
        raise SheetbindError(msg % args.TARGET)
    logger.info("Copied %d record(s) to %s", len(records), args.TARGET)
    _log_summary(diagnostics)


class DecentFormatter(argparse.HelpFormatter):
    """
    An argparse formatter that preserves newlines & keeps indentation.
    """

    def _fill_text(self, text, width, indent):
        """
        Reformat text while keeping newlines for lines shorter than width.
        """
        lines = []
        for line in textwrap.indent(textwrap.dedent(text), indent).splitlines():
            lines.append(textwrap.fill(line, width, subsequent_indent=indent))
        return "\n".join(lines)

    def _split_lines(self, text, width):
        """
        Conserve indentation in help/description lines when splitting long lines.
        """
        lines = []
        for line in textwrap.dedent(text).splitlines():
            if not line.strip():  # pragma: no cover
                continue
            indent = " " * (len(line) - len(line.lstrip()))
            lines.extend(
                textwrap.fill(line, width, subsequent_indent=indent).splitlines()
            )
        return lines


def root_cmd(args):
    if args.version:  # pragma: no cover
        print(f"sheetbind {__version__}")


def create_root_parser():
    parser = argparse.ArgumentParser(
        prog="sheetbind",
        description=(
            "A command-line tool to read rows of Excel sheets (xlsx/xls) into "
            "typed records and to write records back to sheets."
        ),
        allow_abbrev=False,
        formatter_class=DecentFormatter,
    )
    parser.add_argument(
        "-V",
        "--version",
        help="The version of sheetbind command line interface.",
        action="store_true",
    )
    parser.set_defaults(func=root_cmd)
    return parser


def create_common_options_parser():
    parser = argparse.ArgumentParser(
        prog="sheetbind",
        allow_abbrev=False,
        add_help=False,
        formatter_class=DecentFormatter,
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "-v",
        "--verbose",
        action="count",
        dest="verboser",
        default=0,
        help="More verbose output. Repeat to increase verbosity (-vv or -vvv).",
    )
    group.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        dest="quieter",
        help="Less verbose output. Repeat to reduce verbosity (-qq or -qqq).",
    )
    parser.add_argument(
        "--config",
        help="Path to a TOML config file with a [sheetbind] table.",
        type=Path,
        required=False,
    )
    parser.add_argument(
        "-l",
        "--logfile",
        help=(
            "Activate logging to a file at given path. "
            "The path will be created if it is not existing."
        ),
        type=Path,
    )
    sheetopt = parser.add_argument_group("Sheet options")
    sheetopt.add_argument(
        "-s",
        "--sheet",
        help='Name of the sheet to process (default: "Sheet1").',
    )
    sheetopt.add_argument(
        "--start-row",
        help="1-based row number of the header row (default: 1).",
        type=int,
    )
    sheetopt.add_argument(
        "--date-format",
        help='Pattern for dates stored as text (default: "yyyy-MM-dd hh:mm:ss").',
    )
    return parser


def add_headers_subparser(subparsers, options):
    parser = subparsers.add_parser(
        "headers",
        description="Print the column positions and names of the header row.",
        help="Show the header row of a sheet.",
        **options,
    )
    parser.add_argument(
        "FILE",
        type=Path,
        help="The xlsx/xls file to read.",
    )
    parser.set_defaults(func=headers_cmd)


def add_read_subparser(subparsers, options):
    parser = subparsers.add_parser(
        "read",
        description=(
            "Read the rows below the header row into records of a pydantic "
            "model and print each record as one line of JSON."
        ),
        help="Read records from a sheet and print them as JSON lines.",
        **options,
    )
    parser.add_argument(
        "-m",
        "--model",
        help='The record type as "package.module:ClassName".',
        required=True,
    )
    parser.add_argument(
        "FILE",
        type=Path,
        help="The xlsx/xls file to read.",
    )
    parser.set_defaults(func=read_cmd)


def add_copy_subparser(subparsers, options):
    parser = subparsers.add_parser(
        "copy",
        description=(
            "Read records from FILE and write them to TARGET. The columns of "
            "TARGET are ordered by the field order of the model. TARGET must "
            "be an xlsx or xls file."
        ),
        help="Copy records from one spreadsheet file to another.",
        **options,
    )
    parser.add_argument(
        "-m",
        "--model",
        help='The record type as "package.module:ClassName".',
        required=True,
    )
    parser.add_argument(
        "FILE",
        type=Path,
        help="The xlsx/xls file to read.",
    )
    parser.add_argument(
        "TARGET",
        type=Path,
        help="The xlsx/xls file to write.",
    )
    parser.set_defaults(func=copy_cmd)


def main_cli(raw_args=None):
    """Setup CLI app and run commands based on args."""
    # Create root parser for cli app
    parser = create_root_parser()

    subparsers = parser.add_subparsers(
        title="Subcommands",
        dest="subcommand",
        description="Get help for commands with sheetbind COMMAND --help",
    )
    # Create parser to share some options between subparsers. We cannot use the
    # root parser for this because it includes the sub-commands and their help.
    common_options_parser = create_common_options_parser()

    # Create the subparsers with some common options
    common_options = {
        "parents": [common_options_parser],
        "formatter_class": DecentFormatter,
    }
    add_headers_subparser(subparsers, common_options)
    add_read_subparser(subparsers, common_options)
    add_copy_subparser(subparsers, common_options)

    if not raw_args:
        parser.print_help()
        return

    # Parse the command-line arguments
    #   pars_args will call sys.exit(2) if invalid commands are given.
    args = parser.parse_args(raw_args)
    if hasattr(args, "config"):
        process_common_options(args, raw_args)
    args.func(args)


def run_cli_app(raw_args=None):
    """Entry point for running the cli app."""
    if raw_args is None:
        raw_args = sys.argv[1:]
    try:
        main_cli(raw_args)
    except SheetbindError as e:
        logger.error("Terminating with error: %s", e)  # noqa: TRY400
        sys.exit(1)
    except Exception:  # pragma: no cover
        logger.exception("Unexpected error.")
        sys.exit(3)  # value 2 is used by argparse for invalid args.


if __name__ == "__main__":
    run_cli_app(sys.argv[1:])
