from typing import Annotated, Any, Dict, Optional
from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import records, schemas
from app.core.catalog import SchemaSnapshot, Table, get_schema
from app.core.database import get_db
from app.core.query import parse_pagination

router = APIRouter(tags=["Tables"])

db_dep = Annotated[AsyncSession, Depends(get_db)]
schema_dep = Annotated[SchemaSnapshot, Depends(get_schema)]
payload_dep = Annotated[Dict[str, Any], Body()]


# Resolved before the body is read, so an unknown table is always a 404
def get_table(table: str, schema: schema_dep) -> Table:
    return schema.get(table)


table_dep = Annotated[Table, Depends(get_table)]

error_responses = {
    400: {"model": schemas.ErrorResponse},
    404: {"model": schemas.ErrorResponse},
    500: {"model": schemas.ErrorResponse},
}


# List tables
@router.get("/", response_model=schemas.Envelope[schemas.TablesPayload])
async def list_tables(schema: schema_dep):
    return {"response": {"tables": schema.list_tables()}}


# List records
@router.get(
    "/{table}",
    response_model=schemas.Envelope[schemas.RecordsPayload],
    responses=error_responses,
)
async def list_records(
    table: table_dep,
    db: db_dep,
    limit: Optional[str] = None,
    offset: Optional[str] = None,
):
    # Raw strings: a bad limit/offset falls back to the default instead of a 422
    page = parse_pagination(limit, offset)
    rows = await records.list_records(db, table, page)
    return {"response": {"records": rows}}


# Get record
@router.get(
    "/{table}/{record_id}",
    response_model=schemas.Envelope[schemas.RecordPayload],
    responses=error_responses,
)
async def get_record(table: table_dep, record_id: str, db: db_dep):
    record = await records.get_record(db, table, record_id)
    return {"response": {"record": record}}


# Add record
@router.put(
    "/{table}/",
    response_model=schemas.Envelope[schemas.CreatedPayload],
    responses=error_responses,
)
async def create_record(table: table_dep, payload: payload_dep, db: db_dep):
    key_name, new_id = await records.create_record(db, table, payload)
    return {"response": {key_name: new_id}}


# Update record
@router.post(
    "/{table}/{record_id}",
    response_model=schemas.Envelope[schemas.UpdatedPayload],
    responses=error_responses,
)
async def update_record(
    table: table_dep, record_id: str, payload: payload_dep, db: db_dep
):
    count = await records.update_record(db, table, record_id, payload)
    return {"response": {"updated": count}}


# Delete record
@router.delete(
    "/{table}/{record_id}",
    response_model=schemas.Envelope[schemas.DeletedPayload],
    responses=error_responses,
)
async def delete_record(table: table_dep, record_id: str, db: db_dep):
    count = await records.delete_record(db, table, record_id)
    return {"response": {"deleted": count}}
