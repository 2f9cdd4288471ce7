"""Tests for the CSV and XLSX renderers."""

import csv
import io

from openpyxl import load_workbook

from features.renderers import render_csv, render_workbook


def test_csv_quotes_commas_quotes_and_newlines() -> None:
    text = render_csv(
        ["Name", "Note"],
        [["Lunch, downtown", 'He said "hi"'], ["multi\nline", "plain"]],
    )

    assert text.splitlines()[0] == "Name,Note"
    assert '"Lunch, downtown"' in text
    assert '"He said ""hi"""' in text
    assert '"multi\nline"' in text
    assert not text.endswith("\n")


def test_csv_round_trips_through_a_standard_reader() -> None:
    rows = [["Lunch, downtown", 'quote "q"', "a\nb"], ["x", None, 12.5]]

    parsed = list(csv.reader(io.StringIO(render_csv(["A", "B", "C"], rows))))

    assert parsed == [["A", "B", "C"], ["Lunch, downtown", 'quote "q"', "a\nb"], ["x", "", "12.5"]]


def test_csv_without_rows_is_only_the_header() -> None:
    assert render_csv(["Month", "Income (credit)", "Expense (debit)"], []) == (
        "Month,Income (credit),Expense (debit)"
    )


def test_workbook_has_headers_then_raw_values() -> None:
    content = render_workbook(["Category", "Total Expense"], [["Food", 200.0], ["Travel", 50.0]], "Expenses")

    wb = load_workbook(io.BytesIO(content))
    ws = wb.active

    assert wb.sheetnames == ["Expenses"]
    assert [list(r) for r in ws.iter_rows(values_only=True)] == [
        ["Category", "Total Expense"],
        ["Food", 200.0],
        ["Travel", 50.0],
    ]
    assert ws["A1"].font.bold


def test_workbook_without_rows_is_still_valid() -> None:
    content = render_workbook(["Date", "Type"], [], "Transactions")

    ws = load_workbook(io.BytesIO(content)).active

    assert ws.max_row == 1
    assert [c.value for c in ws[1]] == ["Date", "Type"]


def test_workbook_drops_control_characters() -> None:
    content = render_workbook(["Note"], [["bell\x07ring"]], "Transactions")

    ws = load_workbook(io.BytesIO(content)).active

    assert ws["A2"].value == "bellring"
