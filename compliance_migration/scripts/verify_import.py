"""Run the post-import integrity checks and exit non-zero when one fails.

Usage:
    bubble-verify [--database-url URL]
"""
from __future__ import annotations

import argparse
import logging

from compliance_migration.core.config import settings
from compliance_migration.core.errors import ErrorCode
from compliance_migration.core.exceptions import log_fatal
from compliance_migration.core.logging import configure_logging
from compliance_migration.db.session import build_engine
from compliance_migration.services.bubble.verification import verify_import

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify the integrity of an imported store")
    parser.add_argument("--database-url", default=None, help="SQLAlchemy URL of the target store")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(settings.log_level)

    try:
        report = verify_import(build_engine(args.database_url))
    except Exception as exc:
        log_fatal(exc)
        return 1

    if report.failed:
        logger.error("%s: %s", ErrorCode.IMPORT_VERIFICATION_FAILED.value, ErrorCode.IMPORT_VERIFICATION_FAILED.message)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
