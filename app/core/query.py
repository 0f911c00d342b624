from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.sql.elements import TextClause
from sqlalchemy.engine import Dialect

from app.core.catalog import Column, FillPolicy, Table
from app.core.coercion import accepts_value, default_value_for, parse_bigint
from app.core.config import settings
from app.core.exceptions import (
    InvalidFieldError,
    MissingFieldError,
    PrimaryKeyNotFoundError,
)


# -----------------------------------------------------------------------------
# QUERY BUILDER
# Purpose: turn table metadata and request input into parameterized SQL.
# Identifiers only ever come from Table/Column objects of the schema snapshot,
# values only ever travel as bound parameters. The one exception is the
# LIMIT/OFFSET pair, which is held in a Pagination of validated ints.
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Pagination:
    limit: int
    offset: int

    def __post_init__(self):
        for name in ("limit", "offset"):
            value = getattr(self, name)
            if type(value) is not int or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")


def _non_negative_int(raw: Optional[str], default: int) -> int:
    if raw is None:
        return default
    value = parse_bigint(raw)
    if value is None or value < 0:
        return default
    return value


def parse_pagination(
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    default_limit: Optional[int] = None,
    default_offset: Optional[int] = None,
) -> Pagination:
    """
    Build a Pagination from raw query-string values.

    Anything that is not a non-negative 64-bit integer falls back to the
    default instead of failing the request.
    """
    if default_limit is None:
        default_limit = settings.DEFAULT_LIMIT
    if default_offset is None:
        default_offset = settings.DEFAULT_OFFSET
    return Pagination(
        limit=_non_negative_int(limit, default_limit),
        offset=_non_negative_int(offset, default_offset),
    )


@dataclass(frozen=True)
class Statement:
    """SQL text plus the values bound to its named parameters."""

    sql: str
    params: Dict[str, Any] = field(default_factory=dict)
    returns_key: bool = False

    def clause(self) -> TextClause:
        return text(self.sql)


class _Params:
    """Hands out parameter names and collects the bound values."""

    def __init__(self):
        self.values: Dict[str, Any] = {}

    def bind(self, value: Any) -> str:
        name = f"p{len(self.values)}"
        self.values[name] = value
        return f":{name}"


class QueryBuilder:
    """Builds one Statement per CRUD operation for a given SQL dialect."""

    def __init__(self, dialect: Dialect):
        self.dialect = dialect
        self._preparer = dialect.identifier_preparer

    def _table(self, table: Table) -> str:
        return self._preparer.quote(table.name)

    def _column(self, column: Column) -> str:
        return self._preparer.quote(column.name)

    def _primary_key(self, table: Table) -> Column:
        key = table.primary_key
        if key is None:
            raise PrimaryKeyNotFoundError(table.name)
        return key

    def select_page(self, table: Table, page: Pagination) -> Statement:
        # int() again so nothing but digits can reach the SQL text
        sql = (
            f"SELECT * FROM {self._table(table)} "
            f"LIMIT {int(page.limit)} OFFSET {int(page.offset)}"
        )
        return Statement(sql)

    def select_by_key(self, table: Table, key_value: Any) -> Statement:
        key = self._primary_key(table)
        params = _Params()
        sql = (
            f"SELECT * FROM {self._table(table)} "
            f"WHERE {self._column(key)} = {params.bind(key_value)}"
        )
        return Statement(sql, params.values)

    def insert(self, table: Table, payload: Mapping[str, Any]) -> Statement:
        """
        Build the INSERT for a create request.

        Columns are visited in declaration order. Auto-generated columns are
        skipped, omitted nullable columns and unsupported columns with a
        database default are left to the database, and every other omitted
        non-nullable column gets its family default.

        Raises:
            MissingFieldError: A non-nullable column of an unsupported type
                was omitted and has no default.
        """
        params = _Params()
        names: List[str] = []
        placeholders: List[str] = []

        for column in table.columns:
            policy = column.fill_policy
            if policy is FillPolicy.AUTO:
                continue

            if column.name in payload:
                value = payload[column.name]
            elif policy is FillPolicy.TYPE_DEFAULT:
                value = default_value_for(column.family)
            elif policy is FillPolicy.REQUIRED:
                raise MissingFieldError(column.name)
            else:
                continue

            names.append(self._column(column))
            placeholders.append(params.bind(value))

        if names:
            sql = (
                f"INSERT INTO {self._table(table)} ({', '.join(names)}) "
                f"VALUES ({', '.join(placeholders)})"
            )
        elif self.dialect.supports_default_values:
            sql = f"INSERT INTO {self._table(table)} DEFAULT VALUES"
        else:
            sql = f"INSERT INTO {self._table(table)} () VALUES ()"

        returns_key = False
        key = table.primary_key
        if key is not None and self.dialect.insert_returning:
            sql += f" RETURNING {self._column(key)}"
            returns_key = True

        return Statement(sql, params.values, returns_key=returns_key)

    def update(
        self, table: Table, payload: Mapping[str, Any], key_value: Any
    ) -> Optional[Statement]:
        """
        Build the UPDATE for an edit request.

        Payload fields are visited in payload order. Unknown fields are
        ignored; writing the primary key or a value of the wrong type fails
        the whole request.

        Returns:
            The Statement, or None when no field is left to assign.

        Raises:
            PrimaryKeyNotFoundError: The table has no primary key.
            InvalidFieldError: A field targets the primary key or its value
                does not match the column type.
        """
        key = self._primary_key(table)
        params = _Params()
        assignments: List[str] = []

        for name, value in payload.items():
            if name == key.name:
                raise InvalidFieldError(key.name)

            column = table.column(name)
            if column is None:
                continue

            if not accepts_value(column.family, value, column.nullable):
                raise InvalidFieldError(name)

            assignments.append(f"{self._column(column)} = {params.bind(value)}")

        if not assignments:
            return None

        sql = (
            f"UPDATE {self._table(table)} SET {', '.join(assignments)} "
            f"WHERE {self._column(key)} = {params.bind(key_value)}"
        )
        return Statement(sql, params.values)

    def delete(self, table: Table, key_value: Any) -> Statement:
        key = self._primary_key(table)
        params = _Params()
        sql = (
            f"DELETE FROM {self._table(table)} "
            f"WHERE {self._column(key)} = {params.bind(key_value)}"
        )
        return Statement(sql, params.values)
