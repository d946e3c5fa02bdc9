"""Query-related exceptions."""


class QueryException(Exception):
    """Base exception for symbol query errors."""
    pass


class ObjectNotFoundError(QueryException):
    """Raised when a queried object is not in the symbol database."""

    def __init__(self, identifier: str, kind: str | None = None):
        self.identifier = identifier
        self.kind = kind
        label = f"{kind} {identifier}" if kind else identifier
        super().__init__(f"Object not found: {label}")


class InvalidArgumentError(QueryException):
    """Raised when a query argument is out of range or malformed."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)
