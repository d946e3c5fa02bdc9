"""Abstract base class for object parsers."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from calindex.core.enums import ObjectKind
from calindex.core.exceptions import ObjectKindMismatchError
from calindex.core.models import CodeObject, Entity, ObjectHeader, Property
from calindex.core.parsers.code import parse_code
from calindex.core.parsers.declaration import parse_declaration
from calindex.core.parsers.properties import parse_property_bag
from calindex.core.parsers.sections import find_section, section_body, strip_bom

logger = logging.getLogger('base_parser')

# Encodings tried in order; NAV exports are usually OEM (cp850) or ANSI (cp1252)
DEFAULT_ENCODINGS = ('utf-8-sig', 'utf-8', 'cp1252', 'cp850')


def looks_like_export(text: str) -> bool:
    """Heuristic check that decoded text is an object export."""
    unprintable_count = sum(1 for c in text[:1000] if ord(c) < 32 and c not in '\n\r\t')
    if unprintable_count > 10:
        return False
    return 'OBJECT ' in text[:4096]


def detect_and_decode(raw_bytes: bytes, encodings=DEFAULT_ENCODINGS) -> tuple[str, str]:
    """
    Detect file encoding and decode to string.
    Returns (decoded_string, detected_encoding).
    """
    for encoding in encodings:
        try:
            text = raw_bytes.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
        if looks_like_export(text):
            return strip_bom(text), encoding

    # Fallback: force UTF-8 with error replacement
    logger.info("Could not detect encoding, falling back to UTF-8 with replacement")
    return strip_bom(raw_bytes.decode('utf-8', errors='replace')), 'utf-8-fallback'


class BaseParser(ABC):
    """Abstract interface for object parsers.

    Subclasses declare the kinds they accept in ``KINDS`` and implement
    ``parse_body``. ``parse_string`` handles the shared steps: BOM
    stripping, the OBJECT header and the kind check.
    """

    # Object kinds this parser handles
    KINDS: tuple[ObjectKind, ...] = ()

    def parse_string(self, content: str) -> Entity:
        """Parse one object's text into a typed entity.

        Raises:
            InvalidDeclarationError: If the header cannot be parsed
            ObjectKindMismatchError: If the header names a kind this parser does not handle
            MissingSectionError: If a required section is absent
            MalformedHierarchyError: If a tree section has an orphaned item
        """
        text = strip_bom(content)
        header = parse_declaration(text)
        if header.kind not in self.KINDS:
            raise ObjectKindMismatchError(
                [kind.value for kind in self.KINDS],
                header.kind.value,
                object_name=header.name,
                object_id=header.id,
            )
        logger.debug(f"Parsing {header.kind.value} {header.id} {header.name}")
        return self.parse_body(text, header)

    def parse_file(self, filepath: str) -> Entity:
        """Parse a file holding a single object."""
        path = Path(filepath)
        if not path.is_file():
            raise FileNotFoundError(f"Object file not found: {filepath}")
        content, encoding = detect_and_decode(path.read_bytes())
        logger.debug(f"Detected encoding {encoding} for {path.name}")
        return self.parse_string(content)

    @abstractmethod
    def parse_body(self, text: str, header: ObjectHeader) -> Entity:
        """Build the entity from the object text once the header is known."""
        pass

    @staticmethod
    def parse_properties_section(text: str) -> list[Property]:
        """Parse the optional PROPERTIES section into a property bag."""
        section = find_section(text, "PROPERTIES")
        if section is None:
            return []
        return parse_property_bag(section_body(section))

    @staticmethod
    def apply_code(entity: CodeObject, text: str) -> None:
        """Attach CODE section variables, procedures and documentation."""
        code = parse_code(text)
        entity.variables = code.variables
        entity.procedures = code.procedures
        entity.documentation = code.documentation
