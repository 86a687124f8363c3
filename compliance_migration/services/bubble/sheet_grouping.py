"""Collapse legacy sheet versions into composite sheets.

Bubble stored every revision of a product questionnaire as its own sheet. A
composite sheet stands for all revisions of one product for one supplier;
the product name is compared case-insensitively.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable

from compliance_migration.schemas.legacy import LegacySheet
from compliance_migration.services.bubble.id_map import IdMappings

UNKNOWN_PRODUCT = "Unknown Product"


def group_key(sheet: LegacySheet) -> str:
    return f"{(sheet.name or UNKNOWN_PRODUCT).lower()}|{sheet.company_key}"


def version_sort_key(sheet: LegacySheet) -> tuple[datetime, datetime, str]:
    return (sheet.modified_or_epoch, sheet.created_or_epoch, sheet.id)


@dataclass
class SheetGroup:
    name: str
    company_legacy_id: str
    versions: list[LegacySheet] = field(default_factory=list)

    @property
    def latest(self) -> LegacySheet:
        return self.versions[0]

    @property
    def version_count(self) -> int:
        return len(self.versions)

    @property
    def legacy_ids(self) -> list[str]:
        return [version.id for version in self.versions]

    def tag_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for version in self.versions:
            for tag in version.tags:
                seen.setdefault(tag, None)
        return list(seen)


def build_sheet_groups(sheets: Iterable[LegacySheet]) -> dict[str, SheetGroup]:
    groups: dict[str, SheetGroup] = {}
    for sheet in sheets:
        key = group_key(sheet)
        group = groups.get(key)
        if group is None:
            group = groups[key] = SheetGroup(name=sheet.name or UNKNOWN_PRODUCT, company_legacy_id=sheet.company_key)
        group.versions.append(sheet)

    for group in groups.values():
        group.versions.sort(key=version_sort_key, reverse=True)
        # display name follows the latest revision so the result does not depend on input order
        group.name = group.latest.name or UNKNOWN_PRODUCT
    return groups


@dataclass(frozen=True)
class CompositeSheetPlan:
    id: str
    group: SheetGroup
    values: dict[str, Any]
    tag_ids: tuple[str, ...]


def plan_composite_sheets(
    groups: dict[str, SheetGroup],
    mappings: IdMappings,
    id_factory: Callable[[], Any] = uuid.uuid4,
) -> list[CompositeSheetPlan]:
    """Assign a composite id to each group and record it in ``mappings``.

    Every legacy version id is mapped to the composite id and the latest
    version is remembered for table-answer filtering.
    """

    plans: list[CompositeSheetPlan] = []
    for group in groups.values():
        composite_id = str(id_factory())
        latest = group.latest
        for legacy_id in group.legacy_ids:
            mappings.sheet[legacy_id] = composite_id
        mappings.latest_legacy_sheet[composite_id] = latest.id

        values = {
            "id": composite_id,
            "name": group.name,
            "version": group.version_count,
            "company_id": mappings.company.get(group.company_legacy_id),
            "created_by": mappings.user.get(latest.created_by) if latest.created_by else None,
            "status": latest.status or "draft",
            "bubble_id": latest.id,
            "created_at": latest.created_date,
            "modified_at": latest.modified_date,
        }
        tag_ids = tuple(mappings.tag[tag] for tag in group.tag_ids() if tag in mappings.tag)
        plans.append(CompositeSheetPlan(id=composite_id, group=group, values=values, tag_ids=tag_ids))
    return plans


__all__ = [
    "CompositeSheetPlan",
    "SheetGroup",
    "UNKNOWN_PRODUCT",
    "build_sheet_groups",
    "group_key",
    "plan_composite_sheets",
    "version_sort_key",
]
