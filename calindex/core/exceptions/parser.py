"""Parser-related exceptions."""


class ParserException(Exception):
    """Base exception for parser errors."""
    pass


class ParserNotFoundError(ParserException):
    """Raised when no parser exists for an object kind."""
    pass


class ParseError(ParserException):
    """Raised when an object cannot be parsed.

    The message is prefixed with whatever is known of the object, e.g.
    ``Table 3 Payment Terms: Missing section: KEYS``, and with the line
    number when the failure is tied to one line.
    """

    def __init__(
        self,
        message: str,
        object_name: str | None = None,
        line_number: int | None = None,
        content: str | None = None,
        kind: str | None = None,
        object_id: int | None = None,
    ):
        self.kind = kind
        self.object_id = object_id
        self.object_name = object_name
        self.line_number = line_number
        self.content = content

        if line_number:
            message = f"Line {line_number}: {message}"
        described = " ".join(str(part) for part in (kind, object_id, object_name) if part is not None)
        if described:
            message = f"{described}: {message}"
        if content:
            message = f"{message}\n  Declaration: {content[:100]}"

        super().__init__(message)


class InvalidDeclarationError(ParseError):
    """Raised when the OBJECT header line cannot be parsed."""
    pass


class MissingSectionError(ParseError):
    """Raised when a section required for the object kind is absent or unterminated."""

    def __init__(
        self,
        section: str,
        object_name: str | None = None,
        reason: str | None = None,
        kind: str | None = None,
        object_id: int | None = None,
    ):
        self.section = section
        message = f"Missing section: {section}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, object_name=object_name, kind=kind, object_id=object_id)


class MalformedHierarchyError(ParseError):
    """Raised when a tree item has no valid parent for its level."""

    def __init__(
        self,
        message: str,
        section: str | None = None,
        object_name: str | None = None,
        line_number: int | None = None,
    ):
        self.section = section
        if section:
            message = f"{section}: {message}"
        super().__init__(message, object_name=object_name, line_number=line_number)


class ObjectKindMismatchError(ParseError):
    """Raised when an object is handed to a parser for a different kind."""

    def __init__(
        self,
        expected: list[str],
        actual: str,
        object_name: str | None = None,
        object_id: int | None = None,
    ):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Expected object kind {' or '.join(expected)}",
            object_name=object_name,
            kind=actual,
            object_id=object_id,
        )
