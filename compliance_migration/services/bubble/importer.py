"""Load phase: write an exported Bubble snapshot into the target store.

Entities are upserted one by one on their ``bubble_id`` in dependency order,
each in its own transaction, so a bad record costs only itself. Answers are
reconciled against the composite sheets first and then bulk inserted.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from sqlalchemy import delete, insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from compliance_migration.core.errors import ErrorCode
from compliance_migration.db.upsert import insert_ignore, upsert_by_bubble_id
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
from compliance_migration.schemas.legacy import (
    LegacyAnswer,
    LegacyChoice,
    LegacyCompany,
    LegacyListTableColumn,
    LegacyQuestion,
    LegacySection,
    LegacySheet,
    LegacySubsection,
    LegacyTag,
    LegacyUser,
    parse_records,
)
from compliance_migration.services.bubble.answer_reconciler import (
    ReconciliationResult,
    build_answer_rows,
    reconcile_answers,
)
from compliance_migration.services.bubble.exporter import BubbleExport
from compliance_migration.services.bubble.id_map import IdMappings
from compliance_migration.services.bubble.sheet_grouping import build_sheet_groups, plan_composite_sheets

logger = logging.getLogger(__name__)

_WRITE_FAILED = ErrorCode.IMPORT_WRITE_FAILED


def round_half_up(value: float | None, default: int = 1) -> int:
    if not value:
        return default
    return int(math.floor(value + 0.5))


@dataclass
class ImportStats:
    processed: int = 0
    written: int = 0
    skipped: int = 0
    errors: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "written": self.written,
            "skipped": self.skipped,
            "errors": self.errors,
        }


@dataclass
class ImportSummary:
    entities: dict[str, ImportStats] = field(default_factory=dict)
    reconciliation: dict[str, int] = field(default_factory=dict)
    composite_sheets: int = 0

    def stats(self, name: str) -> ImportStats:
        return self.entities.setdefault(name, ImportStats())

    @property
    def answers_inserted(self) -> int:
        return self.stats("answers").written

    def log(self) -> None:
        logger.info("Import complete")
        for name, stats in self.entities.items():
            logger.info("  %-20s %s", name, stats.as_dict())
        if self.reconciliation:
            logger.info("  reconciliation       %s", self.reconciliation)
        logger.info("  composite sheets     %d", self.composite_sheets)


class BubbleImporter:
    def __init__(
        self,
        engine: Engine,
        *,
        batch_size: int = 500,
        id_factory: Callable[[], Any] = uuid.uuid4,
    ) -> None:
        self.engine = engine
        self.batch_size = batch_size
        self.id_factory = id_factory

    # ------------------------------------------------------------------
    # single-row writes

    def _upsert(self, model, values: dict[str, Any], stats: ImportStats) -> str | None:
        try:
            with self.engine.begin() as conn:
                new_id = upsert_by_bubble_id(conn, model, values)
        except SQLAlchemyError as exc:
            stats.errors += 1
            logger.error(
                "%s %s %s: %s", _WRITE_FAILED.value, model.__tablename__, values.get("bubble_id"), exc
            )
            return None
        stats.written += 1
        return new_id

    def _link(self, model, values: dict[str, Any], conflict_columns: Sequence[str], stats: ImportStats) -> None:
        try:
            with self.engine.begin() as conn:
                insert_ignore(conn, model, values, conflict_columns)
        except SQLAlchemyError as exc:
            stats.errors += 1
            logger.error("%s %s %s: %s", _WRITE_FAILED.value, model.__tablename__, values, exc)
            return
        stats.written += 1

    def _new_id(self) -> str:
        return str(self.id_factory())

    # ------------------------------------------------------------------
    # entity phases

    def import_companies(self, records: Iterable[LegacyCompany], mappings: IdMappings) -> ImportStats:
        stats = ImportStats()
        for record in records:
            stats.processed += 1
            values = {
                "id": self._new_id(),
                "name": record.name or "Unknown",
                "location": record.location,
                "type": "supplier" if record.show_as_supplier else "customer",
                "bubble_id": record.id,
                "created_at": record.created_date,
                "modified_at": record.modified_date,
            }
            new_id = self._upsert(Company, values, stats)
            if new_id:
                mappings.company[record.id] = new_id
        return stats

    def import_users(self, records: Iterable[LegacyUser], mappings: IdMappings) -> ImportStats:
        stats = ImportStats()
        for record in records:
            stats.processed += 1
            email = record.email or f"user-{record.id}@placeholder.com"
            if record.first_name and record.last_name:
                full_name = f"{record.first_name} {record.last_name}".strip()
            else:
                full_name = (record.email or "").split("@")[0] or "Unknown"
            values = {
                "id": self._new_id(),
                "email": email,
                "full_name": full_name,
                "company_id": mappings.company.get(record.company) if record.company else None,
                "role": "admin" if record.admin else "user",
                "bubble_id": record.id,
                "created_at": record.created_date,
                "modified_at": record.modified_date,
            }
            new_id = self._upsert(User, values, stats)
            if new_id:
                mappings.user[record.id] = new_id
        return stats

    def import_sections(self, records: Iterable[LegacySection], mappings: IdMappings) -> ImportStats:
        stats = ImportStats()
        for record in records:
            stats.processed += 1
            values = {
                "id": self._new_id(),
                "name": record.name or "Unnamed Section",
                "order_number": round_half_up(record.order),
                "help_text": record.help,
                "bubble_id": record.id,
                "created_at": record.created_date,
            }
            new_id = self._upsert(Section, values, stats)
            if new_id:
                mappings.section[record.id] = new_id
        return stats

    def import_subsections(self, records: Iterable[LegacySubsection], mappings: IdMappings) -> ImportStats:
        stats = ImportStats()
        for record in records:
            stats.processed += 1
            values = {
                "id": self._new_id(),
                "name": record.name or "Unnamed Subsection",
                "order_number": round_half_up(record.order),
                "section_id": mappings.section.get(record.parent_section) if record.parent_section else None,
                "bubble_id": record.id,
                "created_at": record.created_date,
            }
            new_id = self._upsert(Subsection, values, stats)
            if new_id:
                mappings.subsection[record.id] = new_id
        return stats

    def import_tags(self, records: Iterable[LegacyTag], mappings: IdMappings) -> ImportStats:
        stats = ImportStats()
        for record in records:
            stats.processed += 1
            if not record.name:
                stats.skipped += 1
                continue
            values = {
                "id": self._new_id(),
                "name": record.name,
                "description": record.description,
                "bubble_id": record.id,
                "created_at": record.created_date,
            }
            new_id = self._upsert(Tag, values, stats)
            if new_id:
                mappings.tag[record.id] = new_id
        return stats

    def import_questions(self, records: Iterable[LegacyQuestion], mappings: IdMappings) -> ImportStats:
        stats = ImportStats()
        for record in records:
            stats.processed += 1
            values = {
                "id": self._new_id(),
                "name": record.name or "Unnamed Question",
                "content": record.name or "",
                "response_type": record.type or "Single text line",
                "order_number": round_half_up(record.order or record.legacy_number),
                "section_sort_number": record.section_sort_number or None,
                "subsection_sort_number": record.subsection_sort_number or None,
                "subsection_id": (
                    mappings.subsection.get(record.parent_subsection) if record.parent_subsection else None
                ),
                "bubble_id": record.id,
                "created_at": record.created_date,
            }
            new_id = self._upsert(Question, values, stats)
            if new_id:
                mappings.question[record.id] = new_id
        return stats

    def import_question_tags(self, records: Iterable[LegacyQuestion], mappings: IdMappings) -> ImportStats:
        stats = ImportStats()
        for record in records:
            question_id = mappings.question.get(record.id)
            if question_id is None:
                continue
            for legacy_tag in record.tags:
                stats.processed += 1
                tag_id = mappings.tag.get(legacy_tag)
                if tag_id is None:
                    stats.skipped += 1
                    continue
                self._link(
                    QuestionTag,
                    {"question_id": question_id, "tag_id": tag_id},
                    ("question_id", "tag_id"),
                    stats,
                )
        return stats

    def import_choices(self, records: Iterable[LegacyChoice], mappings: IdMappings) -> ImportStats:
        stats = ImportStats()
        for record in records:
            stats.processed += 1
            values = {
                "id": self._new_id(),
                "content": record.text or "Unknown",
                "order_number": round_half_up(record.order),
                "question_id": mappings.question.get(record.parent_question) if record.parent_question else None,
                "bubble_id": record.id,
                "created_at": record.created_date,
            }
            new_id = self._upsert(Choice, values, stats)
            if new_id:
                mappings.choice[record.id] = new_id
        return stats

    def import_list_table_columns(
        self, records: Iterable[LegacyListTableColumn], mappings: IdMappings
    ) -> ImportStats:
        stats = ImportStats()
        for record in records:
            stats.processed += 1
            values = {
                "id": self._new_id(),
                "name": record.name or "Unnamed Column",
                "order_number": round_half_up(record.order),
                "response_type": record.input_type or "text",
                "choice_options": record.choice_options or None,
                "bubble_id": record.id,
                "created_at": record.created_date,
            }
            new_id = self._upsert(ListTableColumn, values, stats)
            if new_id:
                mappings.list_table_column[record.id] = new_id
        return stats

    def import_sheets(
        self, records: Iterable[LegacySheet], mappings: IdMappings, summary: ImportSummary
    ) -> ImportStats:
        stats = ImportStats()
        tag_stats = summary.stats("sheet_tags")
        groups = build_sheet_groups(records)
        logger.info("  Found %d unique product/supplier combinations", len(groups))

        for plan in plan_composite_sheets(groups, mappings, id_factory=self.id_factory):
            stats.processed += 1
            persisted_id = self._upsert(Sheet, plan.values, stats)
            if persisted_id is None:
                for legacy_id in plan.group.legacy_ids:
                    mappings.sheet.pop(legacy_id, None)
                mappings.latest_legacy_sheet.pop(plan.id, None)
                continue
            if persisted_id != plan.id:
                # re-run: the composite row already exists under an earlier id
                for legacy_id in plan.group.legacy_ids:
                    mappings.sheet[legacy_id] = persisted_id
                mappings.latest_legacy_sheet[persisted_id] = mappings.latest_legacy_sheet.pop(plan.id)
            summary.composite_sheets += 1
            for tag_id in plan.tag_ids:
                tag_stats.processed += 1
                self._link(SheetTag, {"sheet_id": persisted_id, "tag_id": tag_id}, ("sheet_id", "tag_id"), tag_stats)
        return stats

    # ------------------------------------------------------------------
    # answers

    def insert_answer_batches(self, rows: Sequence[dict[str, Any]], stats: ImportStats | None = None) -> ImportStats:
        """Bulk insert answer rows, falling back to row-by-row for a failing batch."""

        stats = stats or ImportStats()
        for start in range(0, len(rows), self.batch_size):
            batch = list(rows[start : start + self.batch_size])
            stats.processed += len(batch)
            try:
                with self.engine.begin() as conn:
                    conn.execute(insert(Answer), batch)
                stats.written += len(batch)
            except SQLAlchemyError as exc:
                logger.error("Batch insert error, retrying %d rows one by one: %s", len(batch), exc)
                for row in batch:
                    try:
                        with self.engine.begin() as conn:
                            conn.execute(insert(Answer), [row])
                        stats.written += 1
                    except SQLAlchemyError as row_exc:
                        stats.errors += 1
                        logger.error("%s answers %s: %s", _WRITE_FAILED.value, row.get("id"), row_exc)
            if stats.written // 10000 > (stats.written - len(batch)) // 10000:
                logger.info("  Inserted %d/%d answers...", stats.written, len(rows))
        return stats

    def _clear_answers(self, sheet_ids: set[str]) -> None:
        ids = sorted(sheet_ids)
        for start in range(0, len(ids), self.batch_size):
            chunk = ids[start : start + self.batch_size]
            with self.engine.begin() as conn:
                conn.execute(delete(Answer).where(Answer.sheet_id.in_(chunk)))

    def import_answers(
        self, records: Iterable[LegacyAnswer], mappings: IdMappings, summary: ImportSummary
    ) -> ReconciliationResult:
        result = reconcile_answers(records, mappings)
        summary.reconciliation = result.counters()
        logger.info("  Filtered to %d most-recent answers", len(result.winners))
        logger.info("  Skipped %d answers (no sheet/question mapping)", result.skipped)
        logger.info(
            "  List table: %d kept from latest version, %d filtered from older versions",
            result.table_kept,
            result.table_filtered,
        )

        rows = build_answer_rows(result, mappings, id_factory=self.id_factory)
        # answers are derived data; replacing them keeps a re-run from duplicating rows
        self._clear_answers({row["sheet_id"] for row in rows})
        stats = summary.stats("answers")
        stats.skipped += result.skipped + result.table_filtered
        self.insert_answer_batches(rows, stats)
        return result

    # ------------------------------------------------------------------
    # entry points

    def import_all(self, export: BubbleExport) -> ImportSummary:
        summary = ImportSummary()
        mappings = IdMappings()

        def parsed(name: str, model, raw: list[dict[str, Any]]):
            records, rejected = parse_records(model, raw)
            summary.stats(name).skipped += rejected
            return records

        companies = parsed("companies", LegacyCompany, export.companies)
        users = parsed("users", LegacyUser, export.users)
        sections = parsed("sections", LegacySection, export.sections)
        subsections = parsed("subsections", LegacySubsection, export.subsections)
        tags = parsed("tags", LegacyTag, export.tags)
        questions = parsed("questions", LegacyQuestion, export.questions)
        choices = parsed("choices", LegacyChoice, export.choices)
        columns = parsed("list_table_columns", LegacyListTableColumn, export.list_table_columns)
        sheets = parsed("sheets", LegacySheet, export.sheets)
        answers = parsed("answers", LegacyAnswer, export.answers)

        phases: list[tuple[str, Callable[[], ImportStats]]] = [
            ("companies", lambda: self.import_companies(companies, mappings)),
            ("users", lambda: self.import_users(users, mappings)),
            ("sections", lambda: self.import_sections(sections, mappings)),
            ("subsections", lambda: self.import_subsections(subsections, mappings)),
            ("tags", lambda: self.import_tags(tags, mappings)),
            ("questions", lambda: self.import_questions(questions, mappings)),
            ("question_tags", lambda: self.import_question_tags(questions, mappings)),
            ("choices", lambda: self.import_choices(choices, mappings)),
            ("list_table_columns", lambda: self.import_list_table_columns(columns, mappings)),
            ("sheets", lambda: self.import_sheets(sheets, mappings, summary)),
        ]
        total = len(phases) + 1
        for index, (name, phase) in enumerate(phases, start=1):
            logger.info("[%d/%d] Importing %s...", index, total, name.replace("_", " "))
            _merge(summary.stats(name), phase())
            logger.info("  %s: %s", name, summary.stats(name).as_dict())

        logger.info("[%d/%d] Importing answers with version-based deduplication...", total, total)
        self.import_answers(answers, mappings, summary)
        summary.log()
        return summary

    def import_answers_only(self, export: BubbleExport) -> ImportSummary:
        """Re-run only the answer phase against an already imported store."""

        summary = ImportSummary()
        with self.engine.connect() as conn:
            mappings = IdMappings.from_database(conn)
        logger.info("Loaded id mappings from the target store: %s", mappings.sizes())

        sheets, rejected = parse_records(LegacySheet, export.sheets)
        summary.stats("sheets").skipped += rejected
        composite_by_latest = dict(mappings.sheet)
        mappings.sheet = {}
        mappings.latest_legacy_sheet = {}
        for group in build_sheet_groups(sheets).values():
            composite_id = composite_by_latest.get(group.latest.id)
            if composite_id is None:
                summary.stats("sheets").skipped += 1
                continue
            for legacy_id in group.legacy_ids:
                mappings.sheet[legacy_id] = composite_id
            mappings.latest_legacy_sheet[composite_id] = group.latest.id
            summary.composite_sheets += 1
        logger.info("Recovered %d composite sheets from cached sheets", summary.composite_sheets)

        answers, rejected = parse_records(LegacyAnswer, export.answers)
        summary.stats("answers").skipped += rejected
        self.import_answers(answers, mappings, summary)
        summary.log()
        return summary


def _merge(target: ImportStats, source: ImportStats) -> None:
    target.processed += source.processed
    target.written += source.written
    target.skipped += source.skipped
    target.errors += source.errors


__all__ = [
    "BubbleImporter",
    "ImportStats",
    "ImportSummary",
    "round_half_up",
]
