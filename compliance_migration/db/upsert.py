from __future__ import annotations

from typing import Any, Sequence

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Connection


def _insert_for(conn: Connection, model):
    if conn.dialect.name == "postgresql":
        return postgresql.insert(model)
    if conn.dialect.name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"upsert is not supported for dialect {conn.dialect.name!r}")


def upsert_by_bubble_id(conn: Connection, model, values: dict[str, Any]) -> str:
    """Insert ``values`` or update the row sharing its ``bubble_id``.

    The primary key of an existing row is kept, so re-running an import maps
    legacy ids onto the same target ids. Returns the persisted id.
    """

    stmt = _insert_for(conn, model).values(**values)
    updates = {key: stmt.excluded[key] for key in values if key not in ("id", "bubble_id")}
    stmt = stmt.on_conflict_do_update(index_elements=["bubble_id"], set_=updates).returning(model.id)
    return conn.execute(stmt).scalar_one()


def insert_ignore(
    conn: Connection,
    model,
    values: dict[str, Any],
    conflict_columns: Sequence[str],
) -> None:
    stmt = _insert_for(conn, model).values(**values)
    conn.execute(stmt.on_conflict_do_nothing(index_elements=list(conflict_columns)))


__all__ = ["insert_ignore", "upsert_by_bubble_id"]
