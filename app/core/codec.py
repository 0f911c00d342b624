from typing import Any, Callable, Dict, Mapping, Optional

from app.core.catalog import Table
from app.core.coercion import TypeFamily
from app.core.schemas import Record

Scanner = Callable[[Any], Any]


# Loosely typed engines (SQLite) can hold any value in an integer column,
# only real ints are normalized
def _scan_integer(value: Any) -> Any:
    if isinstance(value, int):
        return int(value)
    return value


def _scan_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8")
    return str(value)


def _scan_opaque(value: Any) -> Any:
    return value


SCANNERS: Dict[TypeFamily, Scanner] = {
    TypeFamily.INTEGER: _scan_integer,
    TypeFamily.TEXT: _scan_text,
    TypeFamily.UNSUPPORTED: _scan_opaque,
}


def scanner_for(family: TypeFamily) -> Scanner:
    """Converter from a raw driver value to its record value."""
    return SCANNERS.get(family, _scan_opaque)


def decode_row(row: Mapping[str, Any], table: Table) -> Record:
    """
    Turn one result row into a JSON-ready record keyed by column name.

    Result columns the table does not declare are passed through untouched.
    """
    record: Record = {}
    for name, value in row.items():
        column = table.column(name)
        scan = scanner_for(column.family) if column is not None else _scan_opaque
        record[name] = scan(value)
    return record
