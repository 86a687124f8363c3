"""Typed views of the records exported from the Bubble application.

Raw export files keep Bubble's field names (``_id``, ``Modified Date``,
``Parent Question``...). The models below alias those names to snake_case
attributes so the load phase never indexes into untyped dicts.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Iterable, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _parse_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _id_list(value: Any) -> list[str]:
    if value in (None, ""):
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value if item]


Timestamp = Annotated[datetime | None, BeforeValidator(_parse_timestamp)]
IdList = Annotated[list[str], BeforeValidator(_id_list)]


class LegacyRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="_id", min_length=1)
    created_date: Timestamp = Field(default=None, alias="Created Date")
    modified_date: Timestamp = Field(default=None, alias="Modified Date")

    @property
    def modified_or_epoch(self) -> datetime:
        return self.modified_date or EPOCH

    @property
    def created_or_epoch(self) -> datetime:
        return self.created_date or EPOCH


class LegacyCompany(LegacyRecord):
    name: str | None = Field(default=None, alias="Name")
    location: str | None = Field(default=None, alias="location text")
    show_as_supplier: bool | None = Field(default=None, alias="Show as supplier")


class LegacyUser(LegacyRecord):
    email: str | None = None
    first_name: str | None = Field(default=None, alias="First Name")
    last_name: str | None = Field(default=None, alias="Last Name")
    company: str | None = Field(default=None, alias="Company")
    admin: bool | None = Field(default=None, alias="Admin")


class LegacySection(LegacyRecord):
    name: str | None = Field(default=None, alias="Name")
    order: float | None = Field(default=None, alias="Order")
    help: str | None = Field(default=None, alias="Help")


class LegacySubsection(LegacyRecord):
    name: str | None = Field(default=None, alias="Name")
    order: float | None = Field(default=None, alias="Order")
    parent_section: str | None = Field(default=None, alias="Parent_Section")


class LegacyTag(LegacyRecord):
    name: str | None = Field(default=None, alias="Name")
    description: str | None = Field(default=None, alias="Description")


class LegacyQuestion(LegacyRecord):
    name: str | None = Field(default=None, alias="Name")
    type: str | None = Field(default=None, alias="Type")
    order: float | None = Field(default=None, alias="Order")
    legacy_number: float | None = Field(default=None, alias="ID")
    section_sort_number: float | None = Field(default=None, alias="SECTION SORT NUMBER")
    subsection_sort_number: float | None = Field(default=None, alias="SUBSECTION SORT NUMBER")
    parent_subsection: str | None = Field(default=None, alias="Parent Subsection")
    tags: IdList = Field(default_factory=list, alias="Tags")


class LegacyChoice(LegacyRecord):
    content: str | None = Field(default=None, alias="Content")
    choice_text: str | None = Field(default=None, alias="Choice Text")
    order: float | None = Field(default=None, alias="Order")
    parent_question: str | None = Field(default=None, alias="Parent Question")

    @property
    def text(self) -> str | None:
        return self.content or self.choice_text


class LegacyListTableColumn(LegacyRecord):
    name: str | None = Field(default=None, alias="Name")
    order: float | None = Field(default=None, alias="Order")
    input_type: str | None = Field(default=None, alias="Input Type")
    choice_options: Any = Field(default=None, alias="Choice Options")


class LegacySheet(LegacyRecord):
    name: str | None = Field(default=None, alias="Name")
    company: str | None = Field(default=None, alias="Company")
    assigned_to: str | None = Field(default=None, alias="Sup Assigned to")
    created_by: str | None = Field(default=None, alias="Created By")
    status: str | None = Field(default=None, alias="Status")
    tags: IdList = Field(default_factory=list, alias="Tags")

    @property
    def company_key(self) -> str:
        return self.company or self.assigned_to or ""


class LegacyAnswer(LegacyRecord):
    sheet: str | None = Field(default=None, alias="Sheet")
    parent_question: str | None = Field(default=None, alias="Parent Question")
    text: str | None = None
    text_area: str | None = Field(default=None, alias="text-area")
    number: float | None = Field(default=None, alias="Number")
    boolean: bool | None = Field(default=None, alias="Boolean")
    date: Timestamp = Field(default=None, alias="Date")
    choice: str | None = Field(default=None, alias="Choice")
    list_table_row: str | None = Field(default=None, alias="List Table Row")
    list_table_column: str | None = Field(default=None, alias="List Table Column")

    @property
    def value_text(self) -> str | None:
        return self.text or self.text_area


RecordT = TypeVar("RecordT", bound=LegacyRecord)


def parse_records(model: type[RecordT], raw_records: Iterable[dict[str, Any]]) -> tuple[list[RecordT], int]:
    """Validate raw export records, dropping the ones that do not parse.

    Returns the parsed records and the number of rejected ones.
    """

    records: list[RecordT] = []
    rejected = 0
    for raw in raw_records:
        try:
            records.append(model.model_validate(raw))
        except ValidationError as exc:
            rejected += 1
            logger.warning(
                "Skipping unparseable %s record %s: %s",
                model.__name__,
                raw.get("_id") if isinstance(raw, dict) else None,
                exc.errors(include_url=False),
            )
    return records, rejected


__all__ = [
    "EPOCH",
    "LegacyAnswer",
    "LegacyChoice",
    "LegacyCompany",
    "LegacyListTableColumn",
    "LegacyQuestion",
    "LegacyRecord",
    "LegacySection",
    "LegacySheet",
    "LegacySubsection",
    "LegacyTag",
    "LegacyUser",
    "parse_records",
]
