"""Core exceptions for calindex."""

from calindex.core.exceptions.loader import (
    FileSizeExceededError,
    LoaderException,
    SourcePathNotFoundError,
)
from calindex.core.exceptions.parser import (
    InvalidDeclarationError,
    MalformedHierarchyError,
    MissingSectionError,
    ObjectKindMismatchError,
    ParseError,
    ParserException,
    ParserNotFoundError,
)
from calindex.core.exceptions.query import (
    InvalidArgumentError,
    ObjectNotFoundError,
    QueryException,
)

__all__ = [
    # Loader
    "LoaderException",
    "SourcePathNotFoundError",
    "FileSizeExceededError",
    # Parser
    "ParserException",
    "ParserNotFoundError",
    "ParseError",
    "InvalidDeclarationError",
    "MissingSectionError",
    "MalformedHierarchyError",
    "ObjectKindMismatchError",
    # Query
    "QueryException",
    "ObjectNotFoundError",
    "InvalidArgumentError",
]
