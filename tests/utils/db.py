from __future__ import annotations

from collections.abc import Sequence
from sqlalchemy import Engine, text

# children first so deletes never trip a foreign key
DEFAULT_TABLES: tuple[str, ...] = (
    "answers",
    "sheet_tags",
    "sheets",
    "list_table_columns",
    "choices",
    "question_tags",
    "questions",
    "tags",
    "subsections",
    "sections",
    "users",
    "companies",
)


def truncate_tables(engine: Engine, tables: Sequence[str] | None = None) -> None:
    """Empty the given tables on a dedicated connection.

    Importers under test write through their own connections, so cleanup
    cannot rely on rolling back a test transaction.
    """
    table_list = tuple(tables or DEFAULT_TABLES)
    if not table_list:
        return

    with engine.begin() as conn:
        if conn.dialect.name == "postgresql":
            quoted = ", ".join(f'"{table}"' for table in table_list)
            conn.execute(text(f"TRUNCATE TABLE {quoted} CASCADE"))
            return
        for table in table_list:
            conn.execute(text(f'DELETE FROM "{table}"'))


__all__ = ["truncate_tables", "DEFAULT_TABLES"]
