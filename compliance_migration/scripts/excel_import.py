"""Import a supplier questionnaire workbook onto its sheet.

Usage:
    excel-import [--workbook PATH] [--database-url URL]
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from compliance_migration.core.config import settings
from compliance_migration.core.exceptions import log_fatal
from compliance_migration.core.logging import configure_logging
from compliance_migration.db.session import build_engine
from compliance_migration.services.spreadsheet.importer import SpreadsheetImporter
from compliance_migration.services.spreadsheet.parser import (
    HQ21_PARSER_CONFIG,
    parse_workbook,
    read_workbook_rows,
)

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Import answers from a supplier Excel questionnaire")
    parser.add_argument("--workbook", type=Path, default=None, help="Path of the .xlsx file")
    parser.add_argument("--database-url", default=None, help="SQLAlchemy URL of the target store")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(settings.log_level)

    workbook_path = args.workbook or settings.workbook_path
    try:
        logger.info("Loading workbook %s", workbook_path)
        workbook_rows = read_workbook_rows(workbook_path)
        logger.info("Found %d sheets", len(workbook_rows))
        parsed = parse_workbook(
            workbook_rows,
            HQ21_PARSER_CONFIG,
            min_question_length=settings.min_question_length,
        )

        importer = SpreadsheetImporter(
            build_engine(args.database_url),
            tag_name=settings.spreadsheet_tag_name,
            company_name=settings.spreadsheet_company_name,
            sheet_name=settings.spreadsheet_sheet_name,
            threshold=settings.match_threshold,
        )
        summary = importer.import_answers(parsed)
        logger.info("Spreadsheet import finished: %s", summary)
    except Exception as exc:
        log_fatal(exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
