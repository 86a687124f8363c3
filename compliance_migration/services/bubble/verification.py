"""Integrity checks run against the target store after an import."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal

from sqlalchemy import func, select
from sqlalchemy.engine import Connection, Engine

from compliance_migration.models import (
    Answer,
    Choice,
    Company,
    ListTableColumn,
    Question,
    QuestionTag,
    Section,
    Sheet,
    SheetTag,
    Subsection,
    Tag,
    User,
)

logger = logging.getLogger(__name__)

CheckStatus = Literal["PASS", "FAIL", "WARN"]

COUNTED_TABLES = (
    Company,
    User,
    Section,
    Subsection,
    Tag,
    Question,
    Choice,
    ListTableColumn,
    Sheet,
    SheetTag,
    QuestionTag,
    Answer,
)


@dataclass(frozen=True)
class CheckResult:
    check: str
    status: CheckStatus
    message: str


@dataclass
class VerificationReport:
    counts: dict[str, int] = field(default_factory=dict)
    results: list[CheckResult] = field(default_factory=list)

    def add(self, check: str, status: CheckStatus, message: str) -> None:
        self.results.append(CheckResult(check, status, message))
        log = logger.error if status == "FAIL" else logger.warning if status == "WARN" else logger.info
        log("  %s %s: %s", status, check, message)

    def by_status(self, status: CheckStatus) -> list[CheckResult]:
        return [result for result in self.results if result.status == status]

    @property
    def failed(self) -> bool:
        return bool(self.by_status("FAIL"))


def _count(conn: Connection, stmt) -> int:
    return int(conn.execute(stmt).scalar_one())


def _check_present(report: VerificationReport, table: str, *, status_if_empty: CheckStatus = "FAIL") -> None:
    count = report.counts.get(table, 0)
    if count > 0:
        report.add(table, "PASS", f"{count} {table} imported")
    else:
        report.add(table, status_if_empty, f"No {table} found")


def verify_import(engine: Engine) -> VerificationReport:
    report = VerificationReport()
    with engine.connect() as conn:
        logger.info("--- Record Counts ---")
        for model in COUNTED_TABLES:
            table = model.__tablename__
            report.counts[table] = _count(conn, select(func.count()).select_from(model))
            logger.info("  %s: %d", table, report.counts[table])
        for table in ("companies", "questions", "sheets", "answers"):
            _check_present(report, table)

        logger.info("--- Answer -> Question Links ---")
        null_questions = _count(conn, select(func.count()).select_from(Answer).where(Answer.question_id.is_(None)))
        if null_questions:
            report.add("answer_questions", "FAIL", f"{null_questions} answers have null question_id")
        else:
            report.add("answer_questions", "PASS", "All answers have question_id set")

        orphaned_questions = _count(
            conn,
            select(func.count())
            .select_from(Answer)
            .outerjoin(Question, Answer.question_id == Question.id)
            .where(Answer.question_id.is_not(None), Question.id.is_(None)),
        )
        if orphaned_questions:
            report.add("answer_question_refs", "FAIL", f"{orphaned_questions} answers reference non-existent questions")
        else:
            report.add("answer_question_refs", "PASS", "All answers reference valid questions")

        logger.info("--- Answer -> Choice Links ---")
        with_choice = _count(conn, select(func.count()).select_from(Answer).where(Answer.choice_id.is_not(None)))
        if with_choice:
            report.add("answer_choices", "PASS", f"{with_choice} answers have a choice")
        else:
            report.add("answer_choices", "WARN", "No answers have a choice")

        orphaned_choices = _count(
            conn,
            select(func.count())
            .select_from(Answer)
            .outerjoin(Choice, Answer.choice_id == Choice.id)
            .where(Answer.choice_id.is_not(None), Choice.id.is_(None)),
        )
        if orphaned_choices:
            report.add("answer_choice_refs", "FAIL", f"{orphaned_choices} answers reference non-existent choices")
        else:
            report.add("answer_choice_refs", "PASS", "All choice answers reference valid choices")

        logger.info("--- Tag Links ---")
        _check_present(report, "question_tags")
        _check_present(report, "sheet_tags", status_if_empty="WARN")

    logger.info(
        "Verification finished: %d passed, %d warnings, %d failed",
        len(report.by_status("PASS")),
        len(report.by_status("WARN")),
        len(report.by_status("FAIL")),
    )
    return report


__all__ = ["CheckResult", "CheckStatus", "VerificationReport", "verify_import"]
