import json

import pytest
from sample_models import Contact

from sheetbind import SheetConfig, read_records, write_records
from sheetbind.cli import main_cli, run_cli_app

PERSON_MODEL = "sample_models:Person"


@pytest.fixture
def contacts_xlsx(tmp_path):
    contacts = [
        Contact(first_name="Ada", last_name="Lovelace", customer_id="7"),
        Contact(first_name="Alan", last_name="Turing", customer_id="12"),
    ]
    path = tmp_path / "contacts.xlsx"
    write_records(contacts, path)
    return path


def test_run_cli_app_no_args_entrypoint(monkeypatch, capsys):
    monkeypatch.setattr("sys.argv", ["sheetbind"])
    run_cli_app()
    captured = capsys.readouterr()
    assert "usage: sheetbind" in captured.out


def test_run_cli_app_no_args(capsys):
    run_cli_app([])
    captured = capsys.readouterr()
    assert "usage: sheetbind" in captured.out


def test_main_unknown_arg(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main_cli(["--unknown-arg"])
    assert exc_info.value.code == 2  # noqa: PLR2004
    captured = capsys.readouterr()
    assert "sheetbind: error: unrecognized arguments: --unknown-arg" in captured.err


def test_main_version(capsys):
    main_cli(["--version"])
    captured = capsys.readouterr()
    assert captured.out.startswith("sheetbind")


@pytest.mark.parametrize("subcommand", ["headers", "read", "copy"])
def test_main_subcmd_help(capsys, subcommand):
    with pytest.raises(SystemExit) as exc_info:
        run_cli_app([subcommand, "--help"])
    assert exc_info.value.code == 0
    captured = capsys.readouterr()
    assert f"usage: sheetbind {subcommand}" in captured.out


# ===== Tests for common options of all subcommands =====


def test_missing_file(tmp_path, caplog):
    with pytest.raises(SystemExit) as exc_info:
        run_cli_app(["headers", str(tmp_path / "missing.xlsx")])
    assert exc_info.value.code == 1
    assert "File not found" in caplog.text


def test_invalid_start_row(person_xlsx, caplog):
    with pytest.raises(SystemExit) as exc_info:
        run_cli_app(["headers", "--start-row", "0", str(person_xlsx)])
    assert exc_info.value.code == 1
    assert "Invalid option" in caplog.text


def test_missing_config_file(tmp_path, person_xlsx, caplog):
    with pytest.raises(SystemExit) as exc_info:
        run_cli_app(
            ["headers", "--config", str(tmp_path / "missing.toml"), str(person_xlsx)]
        )
    assert exc_info.value.code == 1
    assert "Config file not found" in caplog.text


def test_config_file_with_override(tmp_path, xlsx_factory, capsys):
    path = xlsx_factory([["Title"], ["Name", "Age"]], sheet_name="People")
    config_file = tmp_path / "sheetbind.toml"
    config_file.write_text(
        '[sheetbind]\nsheet_name = "People"\nstart_row = 1\n', encoding="utf-8"
    )

    main_cli(["headers", "--config", str(config_file), "--start-row", "2", str(path)])

    captured = capsys.readouterr()
    assert captured.out == "0\tName\n1\tAge\n"


# ===== Tests for the subcommands =====


def test_headers(person_xlsx, capsys):
    main_cli(["headers", str(person_xlsx)])
    captured = capsys.readouterr()
    assert captured.out.splitlines() == [
        "0\tName",
        "1\tAge",
        "2\tMember",
        "3\tJoined",
        "4\tNotes",
    ]


def test_headers_of_unreadable_file(tmp_path, caplog):
    path = tmp_path / "broken.xlsx"
    path.write_text("no spreadsheet", encoding="utf-8")

    with pytest.raises(SystemExit) as exc_info:
        run_cli_app(["headers", str(path)])

    assert exc_info.value.code == 1
    assert "Cannot read header row" in caplog.text


def test_read(person_xlsx, capsys):
    main_cli(["read", "-m", PERSON_MODEL, str(person_xlsx)])

    lines = capsys.readouterr().out.splitlines()

    assert len(lines) == 2
    alice = json.loads(lines[0])
    assert alice["name"] == "Alice"
    assert alice["age"] == 30
    assert alice["member"] is True
    assert alice["joined"] == "2024-01-15T00:00:00"
    assert json.loads(lines[1])["name"] == "Bob"


def test_read_with_sheet_option(xlsx_factory, capsys):
    path = xlsx_factory([["Name"], ["Zoe"]], sheet_name="People")

    main_cli(["read", "--sheet", "People", "--model", PERSON_MODEL, str(path)])

    lines = capsys.readouterr().out.splitlines()
    assert [json.loads(line)["name"] for line in lines] == ["Zoe"]


@pytest.mark.parametrize(
    ("model", "message"),
    [
        ("sample_models", 'Model must be given as "module:ClassName"'),
        ("no_such_module:Person", 'Cannot import module "no_such_module"'),
        ("sample_models:Level", "is not a pydantic model class"),
        ("sample_models:Missing", "is not a pydantic model class"),
    ],
)
def test_read_with_bad_model(person_xlsx, caplog, model, message):
    with pytest.raises(SystemExit) as exc_info:
        run_cli_app(["read", "-m", model, str(person_xlsx)])
    assert exc_info.value.code == 1
    assert message in caplog.text


def test_copy(contacts_xlsx, tmp_path, caplog):
    target = tmp_path / "copy.xlsx"

    with caplog.at_level("INFO"):
        main_cli(
            ["copy", "-m", "sample_models:Contact", str(contacts_xlsx), str(target)]
        )

    assert read_records(target, Contact) == read_records(contacts_xlsx, Contact)
    assert "Copied 2 record(s)" in caplog.text


def test_copy_with_start_row(xlsx_factory, tmp_path):
    source = xlsx_factory(
        [["Contacts"], [None], ["First name", "Last name"], ["Ada", "Lovelace"]]
    )
    target = tmp_path / "copy.xlsx"

    main_cli(
        [
            "copy",
            "--start-row",
            "3",
            "-m",
            "sample_models:Contact",
            str(source),
            str(target),
        ]
    )

    (ada,) = read_records(target, Contact, SheetConfig(start_row=3))
    assert (ada.first_name, ada.last_name) == ("Ada", "Lovelace")


def test_copy_to_xls(contacts_xlsx, tmp_path):
    target = tmp_path / "copy.xls"

    main_cli(["copy", "-m", "sample_models:Contact", str(contacts_xlsx), str(target)])

    assert read_records(target, Contact) == read_records(contacts_xlsx, Contact)


def test_copy_to_unsupported_target(contacts_xlsx, tmp_path, caplog):
    with pytest.raises(SystemExit) as exc_info:
        run_cli_app(
            [
                "copy",
                "-m",
                "sample_models:Contact",
                str(contacts_xlsx),
                str(tmp_path / "copy.xlsm"),
            ]
        )
    assert exc_info.value.code == 1
    assert "Nothing written to" in caplog.text
