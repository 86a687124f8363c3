from __future__ import annotations

import logging
from typing import Any

from compliance_migration.core.errors import ErrorCode

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    def __init__(
        self,
        error_code: ErrorCode,
        *,
        detail: Any | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(error_code.value)
        self.error_code = error_code
        self.detail = detail
        self.extra = extra or {}

    def __str__(self) -> str:
        if self.detail not in (None, ""):
            return f"{self.error_code.value} {self.error_code.message}: {self.detail}"
        return f"{self.error_code.value} {self.error_code.message}"

    def to_log_payload(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "error": {
                "code": self.error_code.value,
                "domain": self.error_code.domain,
                "name": self.error_code.label,
                "message": self.error_code.message,
            }
        }
        if self.detail not in (None, ""):
            document["error"]["detail"] = self.detail
        if self.extra:
            document["error"]["extra"] = self.extra
        return document


class BubbleFetchError(MigrationError):
    """Raised when a page of a primary Bubble table cannot be fetched."""

    def __init__(
        self,
        error_code: ErrorCode = ErrorCode.BUBBLE_FETCH_FAILED,
        *,
        detail: Any | None = None,
        extra: dict[str, Any] | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(error_code, detail=detail, extra=extra)
        self.status_code = status_code


def raise_migration_error(
    error_code: ErrorCode,
    *,
    detail: Any | None = None,
    extra: dict[str, Any] | None = None,
) -> None:
    raise MigrationError(error_code, detail=detail, extra=extra)


def log_fatal(exc: BaseException) -> None:
    """Log an exception that aborts a command run."""

    if isinstance(exc, MigrationError):
        logger.error("Migration aborted: %s", exc.to_log_payload())
        return
    logger.exception("Unhandled exception", exc_info=exc)


__all__ = [
    "BubbleFetchError",
    "MigrationError",
    "log_fatal",
    "raise_migration_error",
]
