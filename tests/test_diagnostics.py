import logging

from sheetbind.diagnostics import Diagnostic, Diagnostics, report


def test_str_with_location():
    diagnostic = Diagnostic(logging.WARNING, "bad value", row=4, column=1, field="age")
    assert str(diagnostic) == "row 5, column 2, field 'age': bad value"


def test_str_without_location():
    assert str(Diagnostic(logging.ERROR, "cannot read")) == "cannot read"


def test_diagnostics_by_level():
    diagnostics = Diagnostics()
    diagnostics.add(logging.DEBUG, "debug")
    diagnostics.add(logging.WARNING, "warning")
    diagnostics.add(logging.ERROR, "error")
    diagnostics.add(logging.CRITICAL, "critical")

    assert len(diagnostics) == 4
    assert [d.message for d in diagnostics.warnings] == ["warning"]
    assert [d.message for d in diagnostics.errors] == ["error", "critical"]
    assert diagnostics.has_errors

    diagnostics.clear()
    assert len(diagnostics) == 0
    assert not diagnostics.has_errors


def test_report_logs_and_calls_sink(caplog):
    received = []

    with caplog.at_level(logging.WARNING):
        diagnostic = report(received.append, logging.WARNING, "oops", row=0)

    assert received == [diagnostic]
    assert "row 1: oops" in caplog.text


def test_report_without_sink(caplog):
    with caplog.at_level(logging.INFO):
        report(None, logging.INFO, "just logged")
    assert "just logged" in caplog.text
