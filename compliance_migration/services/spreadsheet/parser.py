from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence

from compliance_migration.core.errors import ErrorCode
from compliance_migration.core.exceptions import MigrationError

logger = logging.getLogger(__name__)

SheetRows = list[list[Any]]


def _load_workbook(source: Any) -> Any:
    from openpyxl import load_workbook as _openpyxl_load_workbook

    return _openpyxl_load_workbook(source, data_only=True)


def _patterns(*sources: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(source, re.IGNORECASE) for source in sources)


@dataclass(frozen=True)
class SheetParserConfig:
    """Layout of one questionnaire worksheet.

    Column indices are zero-based. ``skip_patterns`` drop boilerplate rows
    and cells; ``table_header_patterns`` mark the header row of an embedded
    table whose data rows follow.
    """

    sheet_name: str
    question_columns: tuple[int, ...]
    answer_column: int
    comment_column: int | None = None
    skip_patterns: tuple[re.Pattern[str], ...] = field(default_factory=tuple)
    table_header_patterns: tuple[re.Pattern[str], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ParsedQuestion:
    sheet_name: str
    row_number: int
    question_text: str
    sub_question_text: str | None
    answer_value: str
    comment_value: str | None
    section: str


HQ21_PARSER_CONFIG: tuple[SheetParserConfig, ...] = (
    SheetParserConfig(
        sheet_name="Supplier Product Contact",
        question_columns=(1,),  # B
        answer_column=2,  # C
        skip_patterns=_patterns(
            r"^short instructions",
            r"^version \d",
            r"^disclaimer",
            r"^HQ Version",
            r"improve legibility",
            r"BLOCK Letters",
            r"Document Completed by",
        ),
    ),
    SheetParserConfig(
        sheet_name="Food Contact",
        question_columns=(1, 2, 3),  # B, C, D
        answer_column=6,  # G
        comment_column=7,  # H
        skip_patterns=_patterns(
            r"^if yes, continue",
            r"^help$",
            r"^answer via",
            r"Food Contact Compliance - General",
            r"^General Information$",
        ),
        table_header_patterns=_patterns(r"CAS Number", r"Chemical Name", r"Concentration", r"FCM Number"),
    ),
    SheetParserConfig(
        sheet_name="Ecolabels",
        question_columns=(0,),  # A
        answer_column=5,  # F
        comment_column=6,  # G
        skip_patterns=_patterns(r"^help$", r"^answer via", r"^EU Ecolabel$", r"^Nordic Ecolabel$", r"^Blue Angel$"),
    ),
    SheetParserConfig(
        sheet_name="Biocides",
        question_columns=(0,),  # A
        answer_column=3,  # D
        comment_column=4,  # E
        skip_patterns=_patterns(r"^if yes, please specify", r"^answer via", r"^Biocides$"),
        table_header_patterns=_patterns(r"Chemical Name", r"CAS Number", r"EC Number"),
    ),
    SheetParserConfig(
        sheet_name="PIDSL",
        question_columns=(1,),  # B
        answer_column=6,  # G
        comment_column=7,  # H
        skip_patterns=_patterns(
            r"^if yes, please provide details",
            r"^answer via",
            r"Pulp and Paper Industry List",
            r"^\(PIDSL\)$",
        ),
        table_header_patterns=_patterns(r"Chemical name", r"CAS Number", r"EC Number"),
    ),
    SheetParserConfig(
        sheet_name="Additional Requirements",
        question_columns=(1, 2, 3),  # B, C, D
        answer_column=2,  # C
        comment_column=3,  # D
        skip_patterns=_patterns(
            r"^if yes, please provide",
            r"^answer via",
            r"^Additional Requirements$",
            r"^Additional comments/information$",
            r"^Mineral Oil \(MOSH/MOAH\)$",
            r"Expiry date$",
        ),
        table_header_patterns=_patterns(r"Substance Name", r"Chemical Name", r"CAS Number"),
    ),
)

SHEET_TO_SECTION: dict[str, str] = {
    "Supplier Product Contact": "Product Information",
    "Food Contact": "Food Contact",
    "Ecolabels": "Ecolabels",
    "Biocides": "Biocides",
    "PIDSL": "PIDSL",
    "Additional Requirements": "Additional Requirements",
}


def cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _cell(row: Sequence[Any], index: int) -> str:
    if index >= len(row):
        return ""
    return cell_text(row[index])


def _row_text(row: Sequence[Any]) -> str:
    return " ".join("" if cell is None else str(cell) for cell in row)


def _matches_any(text: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    return any(pattern.search(text) for pattern in patterns)


def parse_rows(
    rows: Sequence[Sequence[Any]],
    config: SheetParserConfig,
    *,
    min_question_length: int = 20,
    section_map: Mapping[str, str] = SHEET_TO_SECTION,
) -> list[ParsedQuestion]:
    questions: list[ParsedQuestion] = []
    in_table_mode = False
    section = section_map.get(config.sheet_name, config.sheet_name)

    for index, row in enumerate(rows):
        if all(cell_text(cell) == "" for cell in row):
            continue
        row_text = _row_text(row)
        if _matches_any(row_text, config.skip_patterns):
            continue
        if _matches_any(row_text, config.table_header_patterns):
            in_table_mode = True
            continue

        question_text = ""
        sub_question_text = ""
        for column in config.question_columns:
            text = _cell(row, column)
            if _matches_any(text, config.skip_patterns):
                continue
            if len(text) > min_question_length:
                if not question_text:
                    question_text = text
                else:
                    sub_question_text = text

        if not question_text:
            # table data rows and fragments carry no question of their own
            continue
        if in_table_mode:
            logger.debug("%s row %d: leaving table mode", config.sheet_name, index + 1)
            in_table_mode = False

        answer_value = _cell(row, config.answer_column)
        if not answer_value:
            continue
        comment_value = _cell(row, config.comment_column) if config.comment_column is not None else ""
        questions.append(
            ParsedQuestion(
                sheet_name=config.sheet_name,
                row_number=index + 1,
                question_text=question_text,
                sub_question_text=sub_question_text or None,
                answer_value=answer_value,
                comment_value=comment_value or None,
                section=section,
            )
        )
    return questions


def read_workbook_rows(source: Path | str | bytes) -> dict[str, SheetRows]:
    """Read every worksheet of a workbook into lists of cell values (blank cells as ``""``)."""

    try:
        workbook = _load_workbook(io.BytesIO(source) if isinstance(source, bytes) else source)
    except Exception as exc:  # openpyxl raises a mix of zipfile, KeyError and its own errors
        raise MigrationError(ErrorCode.SPREADSHEET_WORKBOOK_UNREADABLE, detail=str(exc)) from exc

    try:
        sheets: dict[str, SheetRows] = {}
        for worksheet in workbook.worksheets:
            sheets[worksheet.title] = [
                ["" if value is None else value for value in values]
                for values in worksheet.iter_rows(values_only=True)
            ]
    finally:
        workbook.close()
    return sheets


def parse_workbook(
    workbook_rows: Mapping[str, SheetRows],
    configs: Sequence[SheetParserConfig] = HQ21_PARSER_CONFIG,
    *,
    min_question_length: int = 20,
) -> list[ParsedQuestion]:
    parsed: list[ParsedQuestion] = []
    for config in configs:
        rows = workbook_rows.get(config.sheet_name)
        if rows is None:
            logger.warning('Sheet "%s" not found, skipping', config.sheet_name)
            continue
        questions = parse_rows(rows, config, min_question_length=min_question_length)
        logger.info("  %s: %d questions with answers", config.sheet_name, len(questions))
        parsed.extend(questions)
    logger.info("Total parsed: %d answered questions", len(parsed))
    return parsed


__all__ = [
    "HQ21_PARSER_CONFIG",
    "ParsedQuestion",
    "SHEET_TO_SECTION",
    "SheetParserConfig",
    "SheetRows",
    "cell_text",
    "parse_rows",
    "parse_workbook",
    "read_workbook_rows",
]
