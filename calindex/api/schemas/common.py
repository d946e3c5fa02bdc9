"""Response envelope shared by every query operation."""

from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

# Error codes
NOT_FOUND = "NOT_FOUND"
INVALID_ARGUMENT = "INVALID_ARGUMENT"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QueryError(BaseModel):
    """Why a query produced no data."""

    code: str = Field(..., description="NOT_FOUND or INVALID_ARGUMENT")
    message: str = Field(..., description="Human-readable error message")
    details: str | None = Field(default=None, description="Additional error details")
    field: str | None = Field(default=None, description="Argument that caused the error, if applicable")


class QueryResponse(BaseModel, Generic[T]):
    """Result of one query operation.

    On success ``data`` holds the operation's payload, e.g. for
    ``get_object(ctx, "Table", 99)``::

        {"success": true, "data": {"kind": "Table", "id": 99, ...}, "error": null}

    On failure ``data`` is null and ``error`` says why::

        {"success": false, "data": null,
         "error": {"code": "NOT_FOUND", "message": "Object not found: Table 99"}}
    """

    success: bool = Field(..., description="Whether the query produced data")
    data: T | None = Field(default=None, description="Operation payload on success")
    error: QueryError | None = Field(default=None, description="Error details on failure")
    timestamp: datetime = Field(default_factory=_utcnow, description="When the query ran (UTC)")

    @property
    def not_found(self) -> bool:
        return self.error is not None and self.error.code == NOT_FOUND

    @classmethod
    def ok(cls, data: T) -> "QueryResponse[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str, field: str | None = None, **extra: Any) -> "QueryResponse[None]":
        """Build a failure; ``extra`` may carry ``details``."""
        return cls(success=False, error=QueryError(code=code, message=message, field=field, **extra))
