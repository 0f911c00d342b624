from typing import Any, Dict, Generic, List, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

# A row or a request payload: column name -> value
Record = Dict[str, Any]


# =========================
# ENVELOPE
# =========================
class Envelope(BaseModel, Generic[T]):
    """Every successful body is wrapped as {"response": ...}."""

    response: T


class ErrorResponse(BaseModel):
    error: str


# =========================
# PAYLOADS
# =========================
class TablesPayload(BaseModel):
    tables: List[str]


class RecordsPayload(BaseModel):
    records: List[Record]


class RecordPayload(BaseModel):
    record: Record


class UpdatedPayload(BaseModel):
    updated: int


class DeletedPayload(BaseModel):
    deleted: int


# Create answers with {"<primary key name>": <new id>}
CreatedPayload = Dict[str, Any]
