"""Alembic migrations shipped inside the package.

The scripts live next to this module so an installed wheel can migrate its own
database; nothing is read from a project checkout.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext

from trackoracle.config.storage import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Engine

MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent


def _alembic_config(connection: Connection | None = None, url: str | None = None) -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    if connection is not None:
        config.attributes["connection"] = connection
    elif url is not None:
        config.set_main_option("sqlalchemy.url", url)
    return config


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Bring the state schema to the latest revision, reusing ``engine`` when given."""

    if engine is None:
        command.upgrade(_alembic_config(url=database_uri or get_database_config().uri), "head")
        return
    with engine.begin() as connection:
        command.upgrade(_alembic_config(connection), "head")


def schema_revision(engine: Engine) -> str | None:
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()
