"""Re-import only the answers from the export cache into an already imported store.

Usage:
    bubble-import-answers [--export-dir DIR] [--database-url URL]
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from compliance_migration.core.config import settings
from compliance_migration.core.exceptions import log_fatal
from compliance_migration.core.logging import configure_logging
from compliance_migration.db.session import build_engine
from compliance_migration.services.bubble.client import create_bubble_client
from compliance_migration.services.bubble.exporter import BubbleExport, BubbleExporter
from compliance_migration.services.bubble.importer import BubbleImporter

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Re-import Bubble answers against existing sheets")
    parser.add_argument("--export-dir", type=Path, default=None, help="Directory of the JSON export cache")
    parser.add_argument("--database-url", default=None, help="SQLAlchemy URL of the target store")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(settings.log_level)

    try:
        engine = build_engine(args.database_url)
        # the API is only needed when the cache is incomplete
        client = create_bubble_client(settings) if settings.bubble_api_url and settings.bubble_api_token else None
        try:
            exporter = BubbleExporter(client, args.export_dir or settings.bubble_export_dir)
            sheets = exporter.export_table("sheet")
            export = BubbleExport(sheets=sheets, answers=exporter.export_answers_by_sheet(sheets))
        finally:
            if client is not None:
                client.close()

        BubbleImporter(engine, batch_size=settings.answer_batch_size).import_answers_only(export)
    except Exception as exc:
        log_fatal(exc)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
