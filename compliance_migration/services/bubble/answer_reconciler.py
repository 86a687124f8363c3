"""Pick the surviving answer per composite sheet slot.

Scalar answers compete across every version of a composite sheet and the
most recently modified one wins. Table answers (those carrying a list-table
row) are only taken from the latest version of the sheet so a table is never
stitched together from rows of different revisions.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable

from compliance_migration.schemas.legacy import LegacyAnswer
from compliance_migration.services.bubble.id_map import IdMappings

logger = logging.getLogger(__name__)

Slot = tuple[str, ...]


def answer_sort_key(answer: LegacyAnswer) -> tuple[datetime, str]:
    stamp = answer.modified_date or answer.created_or_epoch
    return (stamp, answer.id)


@dataclass(frozen=True)
class AnswerCandidate:
    composite_sheet_id: str
    question_id: str
    list_table_row_id: str | None
    answer: LegacyAnswer


@dataclass
class ReconciliationResult:
    winners: dict[Slot, AnswerCandidate] = field(default_factory=dict)
    processed: int = 0
    skipped: int = 0
    table_kept: int = 0
    table_filtered: int = 0

    def counters(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "skipped": self.skipped,
            "table_kept": self.table_kept,
            "table_filtered": self.table_filtered,
            "winners": len(self.winners),
        }


def reconcile_answers(answers: Iterable[LegacyAnswer], mappings: IdMappings) -> ReconciliationResult:
    result = ReconciliationResult()
    for answer in answers:
        result.processed += 1
        if result.processed % 50000 == 0:
            logger.info("  Processed %d answers...", result.processed)

        composite_id = mappings.sheet.get(answer.sheet) if answer.sheet else None
        question_id = mappings.question.get(answer.parent_question) if answer.parent_question else None
        if composite_id is None or question_id is None:
            result.skipped += 1
            continue

        if answer.list_table_row:
            if answer.sheet != mappings.latest_legacy_sheet.get(composite_id):
                result.table_filtered += 1
                continue
            result.table_kept += 1
            slot: Slot = (composite_id, question_id, answer.list_table_row, answer.list_table_column or "")
            row_id: str | None = answer.list_table_row
        else:
            slot = (composite_id, question_id)
            row_id = None

        current = result.winners.get(slot)
        if current is None or answer_sort_key(answer) > answer_sort_key(current.answer):
            result.winners[slot] = AnswerCandidate(
                composite_sheet_id=composite_id,
                question_id=question_id,
                list_table_row_id=row_id,
                answer=answer,
            )
    return result


def build_answer_rows(
    result: ReconciliationResult,
    mappings: IdMappings,
    id_factory: Callable[[], Any] = uuid.uuid4,
) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    for candidate in result.winners.values():
        answer = candidate.answer
        rows.append(
            {
                "id": str(id_factory()),
                "sheet_id": candidate.composite_sheet_id,
                "question_id": candidate.question_id,
                "text_value": answer.value_text,
                "number_value": answer.number,
                "boolean_value": answer.boolean,
                "date_value": answer.date,
                "choice_id": mappings.choice.get(answer.choice) if answer.choice else None,
                "list_table_row_id": candidate.list_table_row_id,
                "list_table_column_id": (
                    mappings.list_table_column.get(answer.list_table_column) if answer.list_table_column else None
                ),
                "created_at": answer.created_date,
                "modified_at": answer.modified_date,
            }
        )
    return rows


__all__ = [
    "AnswerCandidate",
    "ReconciliationResult",
    "Slot",
    "answer_sort_key",
    "build_answer_rows",
    "reconcile_answers",
]
