from __future__ import annotations

import io

import pytest
from openpyxl import Workbook

from compliance_migration.core.errors import ErrorCode
from compliance_migration.core.exceptions import MigrationError
from compliance_migration.services.spreadsheet.parser import (
    HQ21_PARSER_CONFIG,
    SHEET_TO_SECTION,
    parse_rows,
    parse_workbook,
    read_workbook_rows,
)

CONFIGS = {config.sheet_name: config for config in HQ21_PARSER_CONFIG}


def _row(*cells, width: int = 8) -> list:
    values = list(cells) + [""] * (width - len(cells))
    return values[:width]


def test_all_worksheets_are_configured():
    assert set(CONFIGS) == set(SHEET_TO_SECTION)
    assert SHEET_TO_SECTION["Supplier Product Contact"] == "Product Information"
    assert CONFIGS["Food Contact"].question_columns == (1, 2, 3)
    assert CONFIGS["Additional Requirements"].answer_column == 2


def test_food_contact_rows():
    rows = [
        _row("", "Food Contact Compliance - General"),
        _row(),
        _row("", "Is the product intended for food contact applications?", "", "", "", "", "Yes", "Only dry food"),
        _row(
            "",
            "Does the product comply with Regulation (EC) 1935/2004?",
            "Please state the applicable specific migration limits",
            "",
            "",
            "",
            "Yes",
        ),
        _row("", "CAS Number", "Chemical Name", "Concentration"),
        _row("", "123-45-6", "Some chemical", "", "", "", "0.1"),
        _row("", "Is the product free of bisphenol A substances?"),
        _row("", "help", "", "", "", "", "n/a"),
    ]

    parsed = parse_rows(rows, CONFIGS["Food Contact"])

    assert [question.row_number for question in parsed] == [3, 4]
    first, second = parsed
    assert first.question_text == "Is the product intended for food contact applications?"
    assert first.sub_question_text is None
    assert first.answer_value == "Yes"
    assert first.comment_value == "Only dry food"
    assert first.section == "Food Contact"
    assert second.sub_question_text == "Please state the applicable specific migration limits"
    assert second.comment_value is None


def test_question_text_must_exceed_minimum_length():
    config = CONFIGS["Supplier Product Contact"]
    rows = [
        _row("", "x" * 20, "answer"),
        _row("", "y" * 21, "answer"),
    ]

    parsed = parse_rows(rows, config)

    assert [question.question_text for question in parsed] == ["y" * 21]
    assert parse_rows(rows, config, min_question_length=25) == []


def test_skip_patterns_apply_to_whole_row_and_cells():
    config = CONFIGS["Supplier Product Contact"]
    rows = [
        _row("", "Short instructions for completing this form", "read me"),
        _row("", "Please write in BLOCK Letters to improve legibility", "ok"),
        _row("", "Trade name of the product as supplied", "FennoCide BZ26"),
    ]

    parsed = parse_rows(rows, config)

    assert len(parsed) == 1
    assert parsed[0].answer_value == "FennoCide BZ26"
    assert parsed[0].section == "Product Information"
    assert parsed[0].row_number == 3


def test_numeric_answers_are_stringified():
    config = CONFIGS["Biocides"]
    rows = [_row("Concentration of active substance in the product (%)", "", "", 2.5, "measured")]

    parsed = parse_rows(rows, config)

    assert parsed[0].answer_value == "2.5"
    assert parsed[0].comment_value == "measured"


def _workbook_bytes() -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Ecolabels"
    sheet.append(["EU Ecolabel"])
    sheet.append(["Does the product hold an EU Ecolabel licence?", None, None, None, None, "No", "Not applied"])
    sheet.append([None])
    sheet.append(["Is the product listed under the Nordic Swan scheme?", None, None, None, None, "Yes"])
    workbook.create_sheet("Unconfigured")
    stream = io.BytesIO()
    workbook.save(stream)
    return stream.getvalue()


def test_read_and_parse_workbook_skips_missing_sheets():
    rows = read_workbook_rows(_workbook_bytes())

    assert set(rows) == {"Ecolabels", "Unconfigured"}
    assert rows["Ecolabels"][2] == ["", "", "", "", "", "", ""]

    parsed = parse_workbook(rows, HQ21_PARSER_CONFIG)

    assert [(question.sheet_name, question.row_number, question.answer_value) for question in parsed] == [
        ("Ecolabels", 2, "No"),
        ("Ecolabels", 4, "Yes"),
    ]
    assert parsed[0].comment_value == "Not applied"


def test_unreadable_workbook_is_fatal():
    with pytest.raises(MigrationError) as excinfo:
        read_workbook_rows(b"definitely not a workbook")

    assert excinfo.value.error_code is ErrorCode.SPREADSHEET_WORKBOOK_UNREADABLE
