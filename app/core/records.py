import asyncio
from typing import Any, List, Mapping, NamedTuple, Optional, Tuple
import logging

from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.catalog import Table
from app.core.codec import Record, decode_row
from app.core.coercion import coerce_key
from app.core.config import settings
from app.core.exceptions import (
    PrimaryKeyNotFoundError,
    QueryTimeoutError,
    RecordNotFoundError,
)
from app.core.query import Pagination, QueryBuilder, Statement


# -----------------------------------------------------------------------------
# RECORD OPERATIONS
# Purpose: run builder statements against the request session and shape the
# results. Every write is a single statement committed on its own.
# -----------------------------------------------------------------------------

logger = logging.getLogger(__name__)

# Response key for tables without a primary key
FALLBACK_KEY_NAME = "id"


def get_builder(db: AsyncSession) -> QueryBuilder:
    return QueryBuilder(db.get_bind().dialect)


async def execute(db: AsyncSession, statement: Statement) -> Result:
    """
    Execute a statement, bounded by QUERY_TIMEOUT when it is configured.

    Raises:
        QueryTimeoutError: The database did not answer in time.
    """
    logger.debug(f"Executing {statement.sql} with {statement.params}")
    call = db.execute(statement.clause(), statement.params)

    if settings.QUERY_TIMEOUT is None:
        return await call

    try:
        return await asyncio.wait_for(call, timeout=settings.QUERY_TIMEOUT)
    except asyncio.TimeoutError:
        logger.error(f"Statement timed out after {settings.QUERY_TIMEOUT}s: {statement.sql}")
        raise QueryTimeoutError() from None


def _key_value(table: Table, record_id: str) -> Optional[Any]:
    key = table.primary_key
    if key is None:
        raise PrimaryKeyNotFoundError(table.name)
    return coerce_key(key.family, record_id)


async def list_records(
    db: AsyncSession, table: Table, page: Pagination
) -> List[Record]:
    statement = get_builder(db).select_page(table, page)
    result = await execute(db, statement)
    return [decode_row(row._mapping, table) for row in result.all()]


async def get_record(db: AsyncSession, table: Table, record_id: str) -> Record:
    """
    Fetch one row by primary key.

    Raises:
        PrimaryKeyNotFoundError: The table has no primary key.
        RecordNotFoundError: No row has this id.
    """
    key_value = _key_value(table, record_id)
    if key_value is None:
        raise RecordNotFoundError(table.name, record_id)

    statement = get_builder(db).select_by_key(table, key_value)
    result = await execute(db, statement)
    row = result.first()

    if row is None:
        raise RecordNotFoundError(table.name, record_id)
    return decode_row(row._mapping, table)


class WriteOutcome(NamedTuple):
    rowcount: int
    lastrowid: Any
    returned_key: Any


async def _write(db: AsyncSession, statement: Statement, action: str) -> WriteOutcome:
    try:
        result = await execute(db, statement)
        # Read everything off the cursor before the commit releases it
        if statement.returns_key:
            outcome = WriteOutcome(1, None, result.scalar_one())
        else:
            outcome = WriteOutcome(result.rowcount, result.lastrowid, None)
        await db.commit()
        return outcome
    except (SQLAlchemyError, QueryTimeoutError) as error:
        await db.rollback()
        logger.error(f"Failed to {action}: {error}")
        raise


async def create_record(
    db: AsyncSession, table: Table, payload: Mapping[str, Any]
) -> Tuple[str, Any]:
    """
    Insert a row built from the payload and the table's fill policies.

    Returns:
        (key name, new key value) for the response body.
    """
    statement = get_builder(db).insert(table, payload)
    outcome = await _write(db, statement, f"insert into {table.name}")

    key = table.primary_key
    if key is None:
        return FALLBACK_KEY_NAME, outcome.lastrowid

    if statement.returns_key:
        new_id = outcome.returned_key
    elif not key.auto_generated and key.name in payload:
        new_id = payload[key.name]
    else:
        new_id = outcome.lastrowid

    logger.info(f"Inserted into {table.name}: {key.name}={new_id}")
    return key.name, new_id


async def update_record(
    db: AsyncSession, table: Table, record_id: str, payload: Mapping[str, Any]
) -> int:
    """
    Apply the payload to the row with this id.

    Returns:
        Number of rows changed; 0 means no row matched.
    """
    key = table.primary_key
    if key is None:
        raise PrimaryKeyNotFoundError(table.name)

    # Validate the payload before looking at the id so bad input is always a 400
    builder = get_builder(db)
    key_value = coerce_key(key.family, record_id)
    statement = builder.update(table, payload, key_value)

    if statement is None or key_value is None:
        return 0

    outcome = await _write(db, statement, f"update {table.name} {record_id}")
    return outcome.rowcount


async def delete_record(db: AsyncSession, table: Table, record_id: str) -> int:
    key_value = _key_value(table, record_id)
    if key_value is None:
        return 0

    statement = get_builder(db).delete(table, key_value)
    outcome = await _write(db, statement, f"delete from {table.name} {record_id}")
    return outcome.rowcount
