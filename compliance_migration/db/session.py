from __future__ import annotations

from sqlalchemy import Engine, create_engine

from compliance_migration.core.config import settings


def build_engine(database_url: str | None = None) -> Engine:
    """Create the engine for the target store.

    Engines are built on demand by the command entry points so that importing
    the package never requires a database driver.
    """

    return create_engine(database_url or settings.database_url, pool_pre_ping=True, future=True)


__all__ = ["build_engine"]
