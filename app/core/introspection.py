from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection


# -----------------------------------------------------------------------------
# INTROSPECTION
# Purpose: read table names and column metadata from the live database.
# Every dialect reports columns in the shape of MySQL's SHOW COLUMNS so the
# catalog only has to understand one format.
# -----------------------------------------------------------------------------

PRIMARY_KEY = "PRI"
AUTO_INCREMENT = "auto_increment"


class ColumnInfo(NamedTuple):
    """One row of column metadata as reported by the database."""

    field: str
    type: str
    null: str  # "YES" / "NO"
    key: str  # "PRI" for primary-key columns
    default: Optional[str]
    extra: str  # contains "auto_increment" for generated columns


def _quote(conn: AsyncConnection, name: str) -> str:
    return conn.dialect.identifier_preparer.quote(name)


# Some MySQL versions hand SHOW COLUMNS text back as bytes
def _str(value) -> Optional[str]:
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8")
    return value


# =========================
# MySQL / MariaDB
# =========================
async def _mysql_tables(conn: AsyncConnection) -> List[str]:
    result = await conn.execute(text("SHOW TABLES"))
    return [_str(row[0]) for row in result.all()]


async def _mysql_columns(conn: AsyncConnection, table_name: str) -> List[ColumnInfo]:
    result = await conn.execute(text(f"SHOW COLUMNS FROM {_quote(conn, table_name)}"))
    return [
        ColumnInfo(
            field=_str(row[0]),
            type=_str(row[1]) or "",
            null=_str(row[2]) or "NO",
            key=_str(row[3]) or "",
            default=_str(row[4]),
            extra=_str(row[5]) or "",
        )
        for row in result.all()
    ]


# =========================
# SQLite
# =========================
async def _sqlite_tables(conn: AsyncConnection) -> List[str]:
    result = await conn.execute(
        text(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
    )
    return [row[0] for row in result.all()]


async def _sqlite_columns(conn: AsyncConnection, table_name: str) -> List[ColumnInfo]:
    result = await conn.execute(text(f"PRAGMA table_info({_quote(conn, table_name)})"))
    # cid, name, type, notnull, dflt_value, pk
    rows = result.all()

    pk_rows = [row for row in rows if row[5]]
    # A lone INTEGER PRIMARY KEY aliases the rowid and is filled in by SQLite
    rowid_alias = None
    if len(pk_rows) == 1 and (pk_rows[0][2] or "").upper() == "INTEGER":
        rowid_alias = pk_rows[0][1]

    columns = []
    for _cid, name, type_name, notnull, default, pk in rows:
        columns.append(
            ColumnInfo(
                field=name,
                type=type_name or "",
                # rowid aliases report notnull=0 but can never hold NULL
                null="NO" if notnull or name == rowid_alias else "YES",
                key=PRIMARY_KEY if pk else "",
                default=default,
                extra=AUTO_INCREMENT if name == rowid_alias else "",
            )
        )
    return columns


# =========================
# PostgreSQL
# =========================
async def _postgres_tables(conn: AsyncConnection) -> List[str]:
    result = await conn.execute(
        text(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_type = 'BASE TABLE' "
            "ORDER BY table_name"
        )
    )
    return [row[0] for row in result.all()]


async def _postgres_columns(conn: AsyncConnection, table_name: str) -> List[ColumnInfo]:
    key_result = await conn.execute(
        text(
            "SELECT kcu.column_name "
            "FROM information_schema.table_constraints tc "
            "JOIN information_schema.key_column_usage kcu "
            "ON tc.constraint_name = kcu.constraint_name "
            "AND tc.table_schema = kcu.table_schema "
            "WHERE tc.constraint_type = 'PRIMARY KEY' "
            "AND tc.table_schema = current_schema() AND tc.table_name = :table_name"
        ),
        {"table_name": table_name},
    )
    key_columns = {row[0] for row in key_result.all()}

    result = await conn.execute(
        text(
            "SELECT column_name, data_type, is_nullable, column_default, is_identity "
            "FROM information_schema.columns "
            "WHERE table_schema = current_schema() AND table_name = :table_name "
            "ORDER BY ordinal_position"
        ),
        {"table_name": table_name},
    )

    columns = []
    for name, data_type, is_nullable, default, is_identity in result.all():
        generated = is_identity == "YES" or (default or "").startswith("nextval(")
        columns.append(
            ColumnInfo(
                field=name,
                type=data_type or "",
                null=is_nullable,
                key=PRIMARY_KEY if name in key_columns else "",
                default=None if generated else default,
                extra=AUTO_INCREMENT if generated else "",
            )
        )
    return columns


class Introspector(NamedTuple):
    tables: Callable[[AsyncConnection], Awaitable[List[str]]]
    columns: Callable[[AsyncConnection, str], Awaitable[List[ColumnInfo]]]


INTROSPECTORS: Dict[str, Introspector] = {
    "mysql": Introspector(_mysql_tables, _mysql_columns),
    "mariadb": Introspector(_mysql_tables, _mysql_columns),
    "sqlite": Introspector(_sqlite_tables, _sqlite_columns),
    "postgresql": Introspector(_postgres_tables, _postgres_columns),
}


def get_introspector(dialect_name: str) -> Introspector:
    """
    Pick the introspection queries for a SQLAlchemy dialect.

    Raises:
        LookupError: The dialect is not supported.
    """
    try:
        return INTROSPECTORS[dialect_name]
    except KeyError:
        raise LookupError(f"unsupported database dialect: {dialect_name}") from None
