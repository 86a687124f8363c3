from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from compliance_migration.core.errors import ErrorCode
from compliance_migration.core.exceptions import MigrationError, raise_migration_error
from compliance_migration.models import (
    Answer,
    Choice,
    Company,
    Question,
    QuestionTag,
    Section,
    Sheet,
    SheetTag,
    Subsection,
    Tag,
    utcnow,
)
from compliance_migration.services.spreadsheet.matcher import (
    CanonicalQuestion,
    MatchReport,
    MatchResult,
    log_match_report,
    match_questions,
    normalise_choice,
)
from compliance_migration.services.spreadsheet.parser import ParsedQuestion

logger = logging.getLogger(__name__)

DROPDOWN_RESPONSE_TYPES = frozenset({"Select one Radio", "Select one", "Dropdown"})


@dataclass(frozen=True)
class SpreadsheetImportSummary:
    parsed: int
    matched: int
    unmatched: int
    choices_created: int
    imported: int
    errors: int
    company_id: str | None
    sheet_id: str | None


class SpreadsheetImporter:
    """Write answers read from a supplier workbook onto one sheet.

    Existing answers for the same (sheet, question) are overwritten.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        tag_name: str,
        company_name: str,
        sheet_name: str,
        threshold: float = 0.6,
    ) -> None:
        self.engine = engine
        self.tag_name = tag_name
        self.company_name = company_name
        self.sheet_name = sheet_name
        self.threshold = threshold

    def _load_tag(self, db: Session) -> Tag:
        tag = db.scalars(select(Tag).where(Tag.name == self.tag_name).order_by(Tag.id).limit(1)).first()
        if tag is None:
            raise_migration_error(ErrorCode.SPREADSHEET_TAG_NOT_FOUND, detail=self.tag_name)
        return tag

    def load_canonical_questions(self) -> list[CanonicalQuestion]:
        with Session(self.engine) as db:
            tag = self._load_tag(db)
            stmt = (
                select(Question.id, Question.name, Question.response_type, Section.name)
                .join(QuestionTag, QuestionTag.question_id == Question.id)
                .outerjoin(Subsection, Question.subsection_id == Subsection.id)
                .outerjoin(Section, Subsection.section_id == Section.id)
                .where(QuestionTag.tag_id == tag.id)
                .order_by(Question.order_number, Question.id)
            )
            questions = [
                CanonicalQuestion(id=row[0], name=row[1], response_type=row[2], section_name=row[3])
                for row in db.execute(stmt)
            ]
        logger.info("Loaded %d questions tagged with %s", len(questions), self.tag_name)
        return questions

    # ------------------------------------------------------------------#
    # Target rows
    # ------------------------------------------------------------------#

    def _ensure_company(self, db: Session) -> Company:
        company = db.scalars(
            select(Company).where(Company.name == self.company_name).order_by(Company.created_at).limit(1)
        ).first()
        if company is not None:
            logger.info("Found existing company: %s (%s)", company.name, company.id)
            return company
        company = Company(name=self.company_name, type="supplier")
        db.add(company)
        db.flush()
        logger.info("Created new company: %s (%s)", company.name, company.id)
        return company

    def _ensure_sheet(self, db: Session, company: Company) -> Sheet:
        sheet = db.scalars(
            select(Sheet)
            .where(Sheet.name == self.sheet_name, Sheet.company_id == company.id)
            .order_by(Sheet.created_at)
            .limit(1)
        ).first()
        if sheet is not None:
            logger.info("Found existing sheet: %s (%s)", sheet.name, sheet.id)
            return sheet
        sheet = Sheet(name=self.sheet_name, company_id=company.id, status="In Progress")
        db.add(sheet)
        db.flush()
        logger.info("Created new sheet: %s (%s)", sheet.name, sheet.id)
        return sheet

    def _ensure_sheet_tag(self, db: Session, sheet: Sheet, tag: Tag) -> None:
        if db.get(SheetTag, (sheet.id, tag.id)) is None:
            db.add(SheetTag(sheet_id=sheet.id, tag_id=tag.id))
            logger.info("Linked sheet to %s tag", tag.name)
        else:
            logger.info("Sheet already linked to %s tag", tag.name)

    def _resolve_target(self) -> tuple[str, str]:
        try:
            with Session(self.engine) as db:
                tag = self._load_tag(db)
                company = self._ensure_company(db)
                sheet = self._ensure_sheet(db, company)
                self._ensure_sheet_tag(db, sheet, tag)
                target = (company.id, sheet.id)
                db.commit()
        except SQLAlchemyError as exc:
            raise MigrationError(ErrorCode.SPREADSHEET_TARGET_UNAVAILABLE, detail=str(exc)) from exc
        return target

    # ------------------------------------------------------------------#
    # Choices and answers
    # ------------------------------------------------------------------#

    def _load_choice_index(self, question_ids: Sequence[str]) -> dict[str, dict[str, str]]:
        index: dict[str, dict[str, str]] = {}
        if not question_ids:
            return index
        with Session(self.engine) as db:
            rows = db.execute(
                select(Choice.id, Choice.content, Choice.question_id).where(Choice.question_id.in_(question_ids))
            )
            for choice_id, content, question_id in rows:
                index.setdefault(question_id, {})[normalise_choice(content or "")] = choice_id
        return index

    def sync_dropdown_choices(self, matches: Sequence[MatchResult]) -> tuple[dict[str, dict[str, str]], int]:
        """Make sure each dropdown answer has a matching choice on its question."""

        dropdowns = [match for match in matches if match.question.response_type in DROPDOWN_RESPONSE_TYPES]
        index = self._load_choice_index(sorted({match.question.id for match in dropdowns}))
        processed: set[str] = set()
        created = 0
        for match in dropdowns:
            question_id = match.question.id
            if question_id in processed:
                continue
            processed.add(question_id)
            choices = index.setdefault(question_id, {})
            key = normalise_choice(match.parsed.answer_value)
            if key in choices:
                continue
            try:
                with Session(self.engine) as db:
                    choice = Choice(content=match.parsed.answer_value, question_id=question_id)
                    db.add(choice)
                    db.commit()
                    choices[key] = choice.id
                created += 1
            except SQLAlchemyError as exc:
                logger.error("Failed to create choice for question %s: %s", question_id, exc)
        logger.info("Created %d new choices from spreadsheet values", created)
        return index, created

    def _write_answer(self, sheet_id: str, match: MatchResult, choice_index: dict[str, dict[str, str]]) -> None:
        question = match.question
        values = {
            "text_value": match.parsed.answer_value,
            "comment_text": match.parsed.comment_value,
        }
        if question.response_type in DROPDOWN_RESPONSE_TYPES:
            choice_id = choice_index.get(question.id, {}).get(normalise_choice(match.parsed.answer_value))
            if choice_id:
                values["choice_id"] = choice_id
            else:
                logger.warning(
                    "Choice not found for question %s, answer text %r", question.name[:60], match.parsed.answer_value
                )

        with Session(self.engine) as db:
            answer = db.scalars(
                select(Answer)
                .where(Answer.sheet_id == sheet_id, Answer.question_id == question.id)
                .order_by(Answer.created_at)
                .limit(1)
            ).first()
            if answer is None:
                answer = Answer(sheet_id=sheet_id, question_id=question.id)
                db.add(answer)
            for key, value in values.items():
                setattr(answer, key, value)
            answer.modified_at = utcnow()
            db.commit()

    def import_answers(self, parsed_questions: Sequence[ParsedQuestion]) -> SpreadsheetImportSummary:
        candidates = self.load_canonical_questions()
        report: MatchReport = match_questions(parsed_questions, candidates, self.threshold)
        log_match_report(report)

        if not report.matches:
            logger.warning("No matches found, nothing to import")
            return SpreadsheetImportSummary(
                parsed=len(parsed_questions),
                matched=0,
                unmatched=len(report.unmatched),
                choices_created=0,
                imported=0,
                errors=0,
                company_id=None,
                sheet_id=None,
            )

        company_id, sheet_id = self._resolve_target()
        choice_index, choices_created = self.sync_dropdown_choices(report.matches)

        imported = 0
        errors = 0
        for match in report.matches:
            try:
                self._write_answer(sheet_id, match, choice_index)
            except SQLAlchemyError as exc:
                errors += 1
                logger.error("Failed to write answer for question %s: %s", match.question.id, exc)
                continue
            imported += 1
        logger.info("Imported: %d answers, %d errors", imported, errors)

        return SpreadsheetImportSummary(
            parsed=len(parsed_questions),
            matched=len(report.matches),
            unmatched=len(report.unmatched),
            choices_created=choices_created,
            imported=imported,
            errors=errors,
            company_id=company_id,
            sheet_id=sheet_id,
        )


__all__ = [
    "DROPDOWN_RESPONSE_TYPES",
    "SpreadsheetImportSummary",
    "SpreadsheetImporter",
]
