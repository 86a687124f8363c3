"""Extract phase: drain the Bubble tables into a local JSON cache.

Each table lands in ``{export_dir}/{entity}.json``. A present file is reused
as-is on the next run. Answers are exported per sheet because the Data API
stops paging at roughly 50 000 records; that export keeps a job log so an
interrupted run resumes where it stopped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

import httpx

from compliance_migration.core.errors import ErrorCode
from compliance_migration.core.exceptions import BubbleFetchError, raise_migration_error
from compliance_migration.services.bubble.client import BubbleClient

logger = logging.getLogger(__name__)

ENTITY_TABLES: tuple[str, ...] = (
    "company",
    "user",
    "section",
    "subsection",
    "tag",
    "question",
    "choice",
    "listtablecolumn",
    "sheet",
)
ANSWER_TABLE = "answer"
PROGRESS_LOG = "answer.progress.jsonl"
PARTIAL_LOG = "answer.partial.jsonl"


@dataclass
class BubbleExport:
    companies: list[dict[str, Any]] = field(default_factory=list)
    users: list[dict[str, Any]] = field(default_factory=list)
    sections: list[dict[str, Any]] = field(default_factory=list)
    subsections: list[dict[str, Any]] = field(default_factory=list)
    tags: list[dict[str, Any]] = field(default_factory=list)
    questions: list[dict[str, Any]] = field(default_factory=list)
    choices: list[dict[str, Any]] = field(default_factory=list)
    list_table_columns: list[dict[str, Any]] = field(default_factory=list)
    sheets: list[dict[str, Any]] = field(default_factory=list)
    answers: list[dict[str, Any]] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in self.__dataclass_fields__}


def _read_jsonl(path: Path) -> list[Any]:
    entries: list[Any] = []
    if not path.exists():
        return entries
    with path.open("r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                # a crash can leave the last line half written
                logger.warning("Ignoring corrupt line %d in %s", line_number, path.name)
    return entries


class AnswerJobLog:
    """Append-only record of the per-sheet answer export."""

    def __init__(self, export_dir: Path) -> None:
        self.progress_path = export_dir / PROGRESS_LOG
        self.partial_path = export_dir / PARTIAL_LOG

    def load(self) -> tuple[set[str], list[dict[str, Any]]]:
        done = {entry["sheet"] for entry in _read_jsonl(self.progress_path) if isinstance(entry, dict) and "sheet" in entry}
        answers = [entry for entry in _read_jsonl(self.partial_path) if isinstance(entry, dict)]
        return done, answers

    def record_sheet(self, sheet_id: str, answers: Iterable[dict[str, Any]]) -> None:
        with self.partial_path.open("a", encoding="utf-8") as handle:
            for answer in answers:
                handle.write(json.dumps(answer) + "\n")
        with self.progress_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps({"sheet": sheet_id}) + "\n")

    def clear(self) -> None:
        self.progress_path.unlink(missing_ok=True)
        self.partial_path.unlink(missing_ok=True)


class BubbleExporter:
    def __init__(self, client: BubbleClient | None, export_dir: Path | str) -> None:
        self.client = client
        self.export_dir = Path(export_dir)

    def _cache_path(self, entity: str) -> Path:
        return self.export_dir / f"{entity}.json"

    def _load_cache(self, path: Path) -> list[dict[str, Any]]:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise_migration_error(ErrorCode.BUBBLE_CACHE_UNREADABLE, detail=f"{path}: {exc}")
        if not isinstance(data, list):
            raise_migration_error(ErrorCode.BUBBLE_CACHE_UNREADABLE, detail=f"{path}: expected a JSON array")
        return data

    def _write_cache(self, path: Path, records: list[dict[str, Any]]) -> None:
        self.export_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(records, indent=2), encoding="utf-8")

    def _require_client(self, entity: str) -> BubbleClient:
        if self.client is None:
            raise_migration_error(
                ErrorCode.BUBBLE_CACHE_UNREADABLE,
                detail=f"{entity}.json is not cached and no Bubble API is configured",
            )
        return self.client

    def export_table(self, entity: str) -> list[dict[str, Any]]:
        path = self._cache_path(entity)
        if path.exists():
            logger.info("Loading %s from cache...", entity)
            records = self._load_cache(path)
            logger.info("  Loaded %d records from cache", len(records))
            return records

        logger.info("Fetching %s from Bubble...", entity)
        records = self._require_client(entity).fetch_all(entity)
        self._write_cache(path, records)
        logger.info("  Exported %d %s records", len(records), entity)
        return records

    def _fetch_sheet_answers(self, client: BubbleClient, sheet_id: str) -> list[dict[str, Any]]:
        constraints = [{"key": "Sheet", "constraint_type": "equals", "value": sheet_id}]
        collected: list[dict[str, Any]] = []
        cursor = 0
        rate_limited = 0
        while True:
            try:
                response = client.fetch_page_once(ANSWER_TABLE, cursor, constraints)
            except httpx.HTTPError as exc:
                logger.warning("Error fetching answers of sheet %s, skipping: %s", sheet_id, exc)
                break
            if response.status_code == 429:
                rate_limited += 1
                if rate_limited > client.max_retries:
                    logger.warning(
                        "Still rate limited after %d waits on sheet %s, skipping", client.max_retries, sheet_id
                    )
                    break
                logger.info("Rate limited, waiting %ss...", client.backoff_seconds)
                client.pause(client.backoff_seconds)
                continue
            if not response.is_success:
                logger.warning("HTTP %d fetching answers of sheet %s, skipping", response.status_code, sheet_id)
                break
            try:
                page = client.parse_page(ANSWER_TABLE, response)
            except BubbleFetchError as exc:
                logger.warning("Unreadable answers page for sheet %s, skipping: %s", sheet_id, exc)
                break
            if not page.results:
                break
            collected.extend(page.results)
            if page.remaining <= 0:
                break
            cursor += len(page.results)
        return collected

    def export_answers_by_sheet(self, sheets: list[dict[str, Any]]) -> list[dict[str, Any]]:
        path = self._cache_path(ANSWER_TABLE)
        if path.exists():
            logger.info("Loading answers from cache...")
            answers = self._load_cache(path)
            logger.info("  Loaded %d answers from cache", len(answers))
            return answers

        client = self._require_client(ANSWER_TABLE)
        self.export_dir.mkdir(parents=True, exist_ok=True)
        job_log = AnswerJobLog(self.export_dir)
        done, answers = job_log.load()
        seen = {answer["_id"] for answer in answers if answer.get("_id")}
        without_id = 0
        if done:
            logger.info("Resuming answer export: %d sheets done, %d answers recovered", len(done), len(answers))

        logger.info("Fetching answers by sheet (%d sheets)...", len(sheets))
        processed = 0
        for sheet in sheets:
            sheet_id = sheet.get("_id")
            processed += 1
            if not sheet_id or sheet_id in done:
                continue

            fresh = []
            for answer in self._fetch_sheet_answers(client, sheet_id):
                answer_id = answer.get("_id")
                if not answer_id:
                    without_id += 1
                    continue
                if answer_id in seen:
                    continue
                seen.add(answer_id)
                fresh.append(answer)
            answers.extend(fresh)
            job_log.record_sheet(sheet_id, fresh)
            done.add(sheet_id)

            if processed % 100 == 0:
                logger.info("  Processed %d/%d sheets, %d answers so far...", processed, len(sheets), len(answers))

        if without_id:
            logger.warning("  Skipped %d answers without an _id", without_id)
        self._write_cache(path, answers)
        job_log.clear()
        logger.info("  Exported %d answers from %d sheets", len(answers), len(sheets))
        return answers

    def export_all(self) -> BubbleExport:
        tables = {entity: self.export_table(entity) for entity in ENTITY_TABLES}
        export = BubbleExport(
            companies=tables["company"],
            users=tables["user"],
            sections=tables["section"],
            subsections=tables["subsection"],
            tags=tables["tag"],
            questions=tables["question"],
            choices=tables["choice"],
            list_table_columns=tables["listtablecolumn"],
            sheets=tables["sheet"],
        )
        export.answers = self.export_answers_by_sheet(export.sheets)
        logger.info("Export complete: %s", export.counts())
        return export


__all__ = [
    "ANSWER_TABLE",
    "AnswerJobLog",
    "BubbleExport",
    "BubbleExporter",
    "ENTITY_TABLES",
    "PARTIAL_LOG",
    "PROGRESS_LOG",
]
