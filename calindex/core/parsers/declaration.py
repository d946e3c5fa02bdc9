"""OBJECT header and OBJECT-PROPERTIES metadata parsing."""

import re

from calindex.core.enums import ObjectKind
from calindex.core.exceptions import InvalidDeclarationError
from calindex.core.models import ObjectHeader, ObjectMetadata
from calindex.core.parsers.sections import find_section, strip_bom

# Exact header tokens; kind matching is case-sensitive
KIND_TOKENS: dict[str, ObjectKind] = {kind.value: kind for kind in ObjectKind}

_HEADER_RE = re.compile(r"^OBJECT\s+(\S+)\s+(\S+)(?:\s+(.*))?$")

METADATA_PATTERNS = {
    'date': re.compile(r"Date=([^;]+);"),
    'time': re.compile(r"Time=\[?\s*([^\];]+?)\s*\]?;"),
    'version_list': re.compile(r"Version List=([^;]*);"),
    'modified': re.compile(r"Modified=(Yes|No);"),
}


def first_line(text: str) -> str:
    """Return the first non-blank line of an object's text."""
    for line in strip_bom(text).splitlines():
        if line.strip():
            return line.strip()
    return ""


def parse_declaration(text: str) -> ObjectHeader:
    """Parse ``OBJECT <kind> <id> <name>`` from the first line of ``text``.

    Raises:
        InvalidDeclarationError: If the line is not a header, the kind is
            unknown, the id is not an integer, or the name is empty
    """
    line = first_line(text)
    match = _HEADER_RE.match(line)
    if not match:
        raise InvalidDeclarationError("Not an OBJECT declaration", content=line or None)

    kind_token, id_token, name = match.group(1), match.group(2), (match.group(3) or "").strip()

    kind = KIND_TOKENS.get(kind_token)
    if kind is None:
        raise InvalidDeclarationError(f"Unknown object kind '{kind_token}'", content=line)

    if not id_token.isdigit():
        raise InvalidDeclarationError(f"Object id '{id_token}' is not a number", content=line)

    if not name:
        raise InvalidDeclarationError("Object name is empty", content=line)

    return ObjectHeader(
        kind=kind,
        id=int(id_token),
        name=name,
        metadata=parse_metadata(text),
    )


def parse_metadata(text: str) -> ObjectMetadata:
    """Parse the optional OBJECT-PROPERTIES block; absent keys stay None."""
    section = find_section(text, "OBJECT-PROPERTIES")
    metadata = ObjectMetadata()
    if not section:
        return metadata

    for attr, pattern in METADATA_PATTERNS.items():
        match = pattern.search(section)
        if not match:
            continue
        if attr == 'modified':
            metadata.modified = match.group(1) == "Yes"
        else:
            value = match.group(1).strip()
            setattr(metadata, attr, value or None)
    return metadata
