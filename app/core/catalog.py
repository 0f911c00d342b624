from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple
import logging

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from app.core.coercion import TypeFamily, family_of
from app.core.exceptions import SchemaLoadError, UnknownTableError
from app.core.introspection import (
    AUTO_INCREMENT,
    PRIMARY_KEY,
    ColumnInfo,
    get_introspector,
)


# -----------------------------------------------------------------------------
# SCHEMA CATALOG
# Purpose: hold the tables and columns discovered at startup.
# The snapshot is built once and never mutated, so request handlers can share
# it without locking.
# -----------------------------------------------------------------------------

logger = logging.getLogger(__name__)


class FillPolicy(Enum):
    """What a create request does with a column the payload leaves out."""

    AUTO = "auto"  # generated by the database, never inserted
    OPTIONAL = "optional"  # nullable, left out of the INSERT
    SERVER = "server"  # unsupported type with a database default, left out of the INSERT
    TYPE_DEFAULT = "type_default"  # filled with the family default
    REQUIRED = "required"  # no default exists, the caller must supply it


@dataclass(frozen=True)
class Column:
    name: str
    type_name: str
    family: TypeFamily
    nullable: bool
    primary_key: bool = False
    auto_generated: bool = False
    server_default: Optional[str] = None

    @property
    def fill_policy(self) -> FillPolicy:
        if self.auto_generated:
            return FillPolicy.AUTO
        if self.nullable:
            return FillPolicy.OPTIONAL
        # Supported families always get their type default, even over a database default
        if self.family is not TypeFamily.UNSUPPORTED:
            return FillPolicy.TYPE_DEFAULT
        if self.server_default is not None:
            return FillPolicy.SERVER
        return FillPolicy.REQUIRED

    @classmethod
    def from_info(cls, info: ColumnInfo) -> "Column":
        return cls(
            name=info.field,
            type_name=info.type,
            family=family_of(info.type),
            nullable=info.null.upper() == "YES",
            primary_key=info.key == PRIMARY_KEY,
            auto_generated=AUTO_INCREMENT in info.extra.lower(),
            server_default=info.default,
        )


@dataclass(frozen=True)
class Table:
    name: str
    columns: Tuple[Column, ...]
    _by_name: Mapping[str, Column] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(
            self,
            "_by_name",
            MappingProxyType({column.name: column for column in self.columns}),
        )

    @property
    def primary_key(self) -> Optional[Column]:
        # Composite keys are not supported, the first PRI column wins
        return next((column for column in self.columns if column.primary_key), None)

    def column(self, name: str) -> Optional[Column]:
        return self._by_name.get(name)


class SchemaSnapshot:
    """Read-only mapping of table name to Table."""

    def __init__(self, tables: List[Table]):
        self._tables: Mapping[str, Table] = MappingProxyType(
            {table.name: table for table in tables}
        )

    def __len__(self) -> int:
        return len(self._tables)

    def __contains__(self, table_name: object) -> bool:
        return table_name in self._tables

    def list_tables(self) -> List[str]:
        return sorted(self._tables)

    def table_exists(self, table_name: str) -> bool:
        return table_name in self._tables

    def get(self, table_name: str) -> Table:
        """
        Look up a table.

        Raises:
            UnknownTableError: The table was not discovered at startup.
        """
        try:
            return self._tables[table_name]
        except KeyError:
            raise UnknownTableError(table_name) from None

    def columns_of(self, table_name: str) -> Tuple[Column, ...]:
        return self.get(table_name).columns

    def primary_key_of(self, table_name: str) -> Optional[Column]:
        return self.get(table_name).primary_key


async def load_schema(conn: AsyncConnection) -> SchemaSnapshot:
    """
    Introspect every table of the connected database.

    Why: request handlers only ever consult the snapshot, so it has to be
    complete before the first request; any failure aborts the whole load.

    Args:
        conn: Open async connection to the target database.

    Returns:
        The immutable SchemaSnapshot.

    Raises:
        SchemaLoadError: The dialect is unsupported or a metadata query failed.
    """
    dialect_name = conn.dialect.name
    try:
        introspector = get_introspector(dialect_name)
    except LookupError as error:
        raise SchemaLoadError(str(error)) from error

    tables: List[Table] = []
    try:
        table_names = await introspector.tables(conn)
        for table_name in table_names:
            infos = await introspector.columns(conn, table_name)
            columns = tuple(Column.from_info(info) for info in infos)
            tables.append(Table(name=table_name, columns=columns))
            logger.debug(f"Introspected table {table_name}: {len(columns)} columns")
    except SQLAlchemyError as error:
        logger.error(f"Reading {dialect_name} schema failed: {error}")
        raise SchemaLoadError(f"failed to read database schema: {error}") from error

    return SchemaSnapshot(tables)


# Handlers get the snapshot the lifespan stored on the app
def get_schema(request: Request) -> SchemaSnapshot:
    return request.app.state.schema


def describe(snapshot: SchemaSnapshot) -> Dict[str, List[str]]:
    """Table name -> column names, for startup logging."""
    return {
        name: [column.name for column in snapshot.columns_of(name)]
        for name in snapshot.list_tables()
    }
