"""Shared pytest fixtures for sqlstores tests."""

import pytest

from sqlstores.runtime.database import Database
from sqlstores.runtime.store import SqlStore
from sqlstores.specs.field import FieldSchema, FieldSpec
from sqlstores.specs.store import StoreConfig

ITEMS_DDL = """
CREATE TABLE items (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT,
    groupId INTEGER,
    pos INTEGER,
    secret TEXT
)
"""


@pytest.fixture
def item_schema() -> FieldSchema:
    """Return the field schema of the items table."""
    return FieldSchema.of(
        FieldSpec(name="id", type="id"),
        FieldSpec(name="name", type="string", max_length=64, searchable=True),
        FieldSpec(name="groupId", type="number", nullable=True, searchable=True),
        FieldSpec(name="pos", type="number", nullable=True),
        FieldSpec(name="secret", type="string", nullable=True, silent=True),
    )


@pytest.fixture
def item_config(item_schema: FieldSchema) -> StoreConfig:
    """Return a positioned store config, grouped by groupId."""
    return StoreConfig(
        name="items",
        table="items",
        field_schema=item_schema,
        position_field="pos",
        position_filter=["groupId"],
    )


@pytest.fixture
def db() -> Database:
    """Create an in-memory SQLite database with the items table."""
    database = Database.sqlite()
    database.execute(ITEMS_DDL)
    yield database
    database.close()


@pytest.fixture
def store(db: Database, item_config: StoreConfig) -> SqlStore:
    """Create an items store over the in-memory database."""
    return SqlStore(db, item_config)


@pytest.fixture
def positions_of(db: Database):
    """Return a helper mapping item names to positions within a group."""

    def positions(group_id: int | None = 1) -> dict[str, int]:
        if group_id is None:
            rows = db.execute("SELECT name, pos FROM items WHERE groupId IS NULL")
        else:
            rows = db.execute("SELECT name, pos FROM items WHERE groupId = ?", [group_id])
        return {r["name"]: r["pos"] for r in rows}

    return positions
