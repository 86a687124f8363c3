import os
import sys
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from tests.factories import set_factory_session  # noqa: E402
from tests.utils.db import truncate_tables  # noqa: E402


def _alembic_config(database_url: str) -> Config:
    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", database_url)
    # keep pytest's logging capture intact
    cfg.attributes["configure_logger"] = False
    return cfg


@pytest.fixture(scope="session", autouse=True)
def prepare_db(tmp_path_factory):
    """Create a throwaway SQLite store and migrate it to head."""

    # Prefer an explicit TEST_DATABASE_URL (e.g. a local Supabase Postgres)
    target_url = os.environ.get("TEST_DATABASE_URL")
    if not target_url:
        db_path = tmp_path_factory.mktemp("db") / "migration.sqlite3"
        target_url = f"sqlite:///{db_path}"

    command.upgrade(_alembic_config(target_url), "head")

    os.environ["TEST_DATABASE_URL"] = target_url
    from compliance_migration.core import config as app_config

    app_config.settings.database_url = target_url
    yield target_url


@pytest.fixture(scope="session")
def engine(prepare_db):
    engine = create_engine(prepare_db, future=True)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    truncate_tables(engine)
    session = Session(engine)
    set_factory_session(session)
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        set_factory_session(None)
