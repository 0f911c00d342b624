import dataclasses
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

from app.core.catalog import Column, FillPolicy, SchemaSnapshot, Table, load_schema
from app.core.coercion import TypeFamily
from app.core.exceptions import SchemaLoadError, UnknownTableError
from app.core.introspection import ColumnInfo, get_introspector

TABLE_NAMES = ["events", "items", "readings", "scores", "users"]


@pytest.mark.asyncio
async def test_every_table_is_discovered(schema):
    """Introspection finds all tables and nothing else"""
    assert schema.list_tables() == TABLE_NAMES
    for name in TABLE_NAMES:
        assert schema.table_exists(name)
    assert not schema.table_exists("sqlite_master")
    assert not schema.table_exists("unknown")


@pytest.mark.asyncio
async def test_columns_keep_declaration_order(schema):
    names = [column.name for column in schema.columns_of("items")]
    assert names == ["id", "title", "description", "updated"]


@pytest.mark.asyncio
async def test_integer_primary_key_is_auto_generated(schema):
    """SQLite rowid alias is reported as auto_increment"""
    key = schema.primary_key_of("items")
    assert key.name == "id"
    assert key.family is TypeFamily.INTEGER
    assert key.auto_generated
    assert not key.nullable
    assert key.fill_policy is FillPolicy.AUTO


@pytest.mark.asyncio
async def test_primary_key_is_resolved_by_key_role(schema):
    assert schema.primary_key_of("users").name == "user_id"


@pytest.mark.asyncio
async def test_table_without_primary_key(schema):
    assert schema.primary_key_of("events") is None


@pytest.mark.asyncio
async def test_fill_policies(schema):
    items = schema.get("items")
    assert items.column("title").fill_policy is FillPolicy.TYPE_DEFAULT
    assert items.column("updated").fill_policy is FillPolicy.OPTIONAL

    events = schema.get("events")
    assert events.column("happened_at").family is TypeFamily.UNSUPPORTED
    assert events.column("happened_at").fill_policy is FillPolicy.SERVER
    assert events.column("status").fill_policy is FillPolicy.TYPE_DEFAULT

    readings = schema.get("readings")
    assert readings.column("value").fill_policy is FillPolicy.REQUIRED


@pytest.mark.asyncio
async def test_unknown_table_lookup_raises(schema):
    with pytest.raises(UnknownTableError):
        schema.get("unknown")
    with pytest.raises(UnknownTableError):
        schema.columns_of("unknown")


@pytest.mark.asyncio
async def test_snapshot_is_read_only(schema):
    with pytest.raises(TypeError):
        schema._tables["other"] = schema.get("items")
    with pytest.raises(dataclasses.FrozenInstanceError):
        schema.get("items").name = "other"


def test_column_from_mysql_show_columns():
    """Rows shaped like MySQL's SHOW COLUMNS"""
    key = Column.from_info(ColumnInfo("id", "int(11)", "NO", "PRI", None, "auto_increment"))
    assert key.primary_key
    assert key.auto_generated
    assert key.family is TypeFamily.INTEGER

    title = Column.from_info(ColumnInfo("title", "varchar(255)", "NO", "", None, ""))
    assert title.family is TypeFamily.TEXT
    assert title.fill_policy is FillPolicy.TYPE_DEFAULT

    status = Column.from_info(ColumnInfo("status", "varchar(20)", "NO", "", "new", ""))
    assert status.fill_policy is FillPolicy.TYPE_DEFAULT

    created = Column.from_info(
        ColumnInfo("created", "datetime", "NO", "", "CURRENT_TIMESTAMP", "")
    )
    assert created.fill_policy is FillPolicy.SERVER

    updated = Column.from_info(ColumnInfo("updated", "text", "YES", "", None, ""))
    assert updated.nullable
    assert updated.fill_policy is FillPolicy.OPTIONAL


def test_first_primary_key_column_wins():
    """Composite keys are not supported, only the first PRI column is used"""
    table = Table(
        name="memberships",
        columns=(
            Column.from_info(ColumnInfo("group_id", "int", "NO", "PRI", None, "")),
            Column.from_info(ColumnInfo("user_id", "int", "NO", "PRI", None, "")),
        ),
    )
    assert table.primary_key.name == "group_id"


def test_snapshot_lookups():
    table = Table(
        name="notes",
        columns=(Column.from_info(ColumnInfo("body", "text", "YES", "", None, "")),),
    )
    snapshot = SchemaSnapshot([table])

    assert len(snapshot) == 1
    assert "notes" in snapshot
    assert snapshot.get("notes") is table
    assert snapshot.primary_key_of("notes") is None


def test_introspector_for_each_dialect():
    for name in ("mysql", "mariadb", "sqlite", "postgresql"):
        assert get_introspector(name) is not None
    with pytest.raises(LookupError):
        get_introspector("oracle")


@pytest.mark.asyncio
async def test_unsupported_dialect_aborts_load():
    conn = SimpleNamespace(dialect=SimpleNamespace(name="oracle"))
    with pytest.raises(SchemaLoadError):
        await load_schema(conn)


@pytest.mark.asyncio
async def test_query_failure_aborts_load():
    """No partial catalog when a metadata query fails"""

    async def failing_execute(*args, **kwargs):
        raise OperationalError("SELECT name FROM sqlite_master", {}, Exception("disk I/O error"))

    conn = SimpleNamespace(dialect=SimpleNamespace(name="sqlite"), execute=failing_execute)
    with pytest.raises(SchemaLoadError):
        await load_schema(conn)
