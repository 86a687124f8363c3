from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.engine import Connection

from compliance_migration.models import (
    Choice,
    Company,
    ListTableColumn,
    Question,
    Section,
    Sheet,
    Subsection,
    Tag,
    User,
)


@dataclass
class IdMappings:
    """Legacy id to target id translation tables, one per entity type.

    ``sheet`` maps every legacy sheet version to its composite sheet id and
    ``latest_legacy_sheet`` maps each composite id back to the legacy id of
    its latest version.
    """

    company: dict[str, str] = field(default_factory=dict)
    user: dict[str, str] = field(default_factory=dict)
    section: dict[str, str] = field(default_factory=dict)
    subsection: dict[str, str] = field(default_factory=dict)
    tag: dict[str, str] = field(default_factory=dict)
    question: dict[str, str] = field(default_factory=dict)
    choice: dict[str, str] = field(default_factory=dict)
    list_table_column: dict[str, str] = field(default_factory=dict)
    sheet: dict[str, str] = field(default_factory=dict)
    latest_legacy_sheet: dict[str, str] = field(default_factory=dict)

    def sizes(self) -> dict[str, int]:
        return {name: len(getattr(self, name)) for name in self.__dataclass_fields__}

    @classmethod
    def from_database(cls, conn: Connection) -> "IdMappings":
        """Rebuild the entity maps from the ``bubble_id`` columns of the target store.

        Sheet maps only know each composite sheet's latest version; callers
        regroup the cached sheets to recover the older versions.
        """

        mappings = cls()
        sources = {
            "company": Company,
            "user": User,
            "section": Section,
            "subsection": Subsection,
            "tag": Tag,
            "question": Question,
            "choice": Choice,
            "list_table_column": ListTableColumn,
            "sheet": Sheet,
        }
        for name, model in sources.items():
            rows = conn.execute(select(model.bubble_id, model.id).where(model.bubble_id.is_not(None)))
            target = getattr(mappings, name)
            for bubble_id, new_id in rows:
                target[bubble_id] = new_id
        mappings.latest_legacy_sheet = {new_id: bubble_id for bubble_id, new_id in mappings.sheet.items()}
        return mappings


__all__ = ["IdMappings"]
