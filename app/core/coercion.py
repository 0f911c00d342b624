import re
from enum import Enum
from typing import Any, Optional


# -----------------------------------------------------------------------------
# TYPE COERCION RULES
# Purpose: bucket declared SQL types into families and decide which JSON values
# a column accepts and what it gets when a create payload leaves it out.
# -----------------------------------------------------------------------------


class TypeFamily(Enum):
    """Normalized bucket of a declared SQL column type."""

    INTEGER = "integer"
    TEXT = "text"
    UNSUPPORTED = "unsupported"


INTEGER_TYPES = frozenset(
    {
        "int",
        "integer",
        "tinyint",
        "smallint",
        "mediumint",
        "bigint",
        "serial",
        "smallserial",
        "bigserial",
    }
)

TEXT_TYPES = frozenset(
    {
        "text",
        "tinytext",
        "mediumtext",
        "longtext",
        "char",
        "varchar",
        "character",
        "character varying",
        "nchar",
        "nvarchar",
    }
)

# Signed 64-bit range, the widest integer a key or LIMIT can hold
MIN_BIGINT = -(2**63)
MAX_BIGINT = 2**63 - 1

# "varchar(255)", "int(11) unsigned", "character varying(40)"
_TYPE_NAME = re.compile(r"^\s*([a-z ]+?)\s*(?:\(.*\))?(?:\s+(?:unsigned|signed|zerofill))*\s*$")


def family_of(type_name: Optional[str]) -> TypeFamily:
    """
    Resolve the family of a declared column type string.

    Args:
        type_name: Type as reported by introspection, e.g. "varchar(255)".

    Returns:
        The TypeFamily bucket; anything unrecognized is UNSUPPORTED.
    """
    if not type_name:
        return TypeFamily.UNSUPPORTED

    match = _TYPE_NAME.match(type_name.lower())
    if not match:
        return TypeFamily.UNSUPPORTED

    base = match.group(1)
    if base in INTEGER_TYPES:
        return TypeFamily.INTEGER
    if base in TEXT_TYPES:
        return TypeFamily.TEXT
    return TypeFamily.UNSUPPORTED


def is_integer(value: Any) -> bool:
    # bool is an int subclass but true/false is not an integer in JSON
    return isinstance(value, int) and not isinstance(value, bool)


def parse_bigint(raw: Any) -> Optional[int]:
    """Parse an integer string, None when it is not one or overflows 64 bits."""
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return None
    if not MIN_BIGINT <= value <= MAX_BIGINT:
        return None
    return value


def accepts_value(family: TypeFamily, value: Any, nullable: bool) -> bool:
    """Check whether a decoded JSON value can be written to a column."""
    if family is TypeFamily.INTEGER:
        return is_integer(value)

    if family is TypeFamily.TEXT:
        if value is None:
            return nullable
        return isinstance(value, str)

    return False


def default_value_for(family: TypeFamily) -> Any:
    """
    Value written to a non-nullable column the caller left out.

    Raises:
        ValueError: The family has no default.
    """
    if family is TypeFamily.INTEGER:
        return 0
    if family is TypeFamily.TEXT:
        return ""
    raise ValueError(f"no default value for {family.value} columns")


def coerce_key(family: TypeFamily, raw_id: str) -> Optional[Any]:
    """
    Convert a path id into a value comparable with the key column.

    Returns None when the id can never match a row ("abc" or a number past
    64 bits for an integer key), so callers can answer without querying.
    """
    if family is TypeFamily.INTEGER:
        return parse_bigint(raw_id)
    return raw_id
