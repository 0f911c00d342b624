"""
Exception classes for DB Explorer operations.

Every request-time error carries the HTTP status it maps to and the message
rendered as ``{"error": message}`` by the handlers in ``app.main``.
"""

from fastapi import status


class ExplorerError(Exception):
    """Base exception for request-time explorer errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ExplorerError):
    status_code = status.HTTP_404_NOT_FOUND


class UnknownTableError(NotFoundError):
    """Raised when a table name is not in the schema snapshot."""

    def __init__(self, table_name: str):
        super().__init__("unknown table")
        self.table_name = table_name


class PrimaryKeyNotFoundError(NotFoundError):
    """Raised when an operation needs a primary key the table does not have."""

    def __init__(self, table_name: str):
        super().__init__("not found primary key")
        self.table_name = table_name


class RecordNotFoundError(NotFoundError):
    def __init__(self, table_name: str, record_id: str):
        super().__init__("record not found")
        self.table_name = table_name
        self.record_id = record_id


class BadInputError(ExplorerError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidFieldError(BadInputError):
    """Raised when a payload field cannot be written to its column."""

    def __init__(self, field: str):
        super().__init__(f"field {field} have invalid type")
        self.field = field


class MissingFieldError(BadInputError):
    """Raised when a non-nullable column has neither a value nor a default."""

    def __init__(self, field: str):
        super().__init__(f"field {field} is required")
        self.field = field


class InvalidBodyError(BadInputError):
    def __init__(self):
        super().__init__("invalid request body")


class QueryTimeoutError(ExplorerError):
    status_code = status.HTTP_504_GATEWAY_TIMEOUT

    def __init__(self):
        super().__init__("query timed out")


class SchemaLoadError(Exception):
    """Raised when the database schema cannot be introspected at startup."""

    pass
