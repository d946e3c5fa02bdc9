"""Parser module for C/AL object exports."""

from calindex.core.enums import ObjectKind
from calindex.core.models import Entity
from calindex.core.parsers.base import BaseParser
from calindex.core.parsers.codeunit_parser import CodeunitParser
from calindex.core.parsers.declaration import parse_declaration
from calindex.core.parsers.menusuite_parser import MenuSuiteParser
from calindex.core.parsers.page_parser import PageParser
from calindex.core.parsers.query_parser import QueryParser
from calindex.core.parsers.report_parser import ReportParser
from calindex.core.parsers.sections import strip_bom
from calindex.core.parsers.table_parser import TableParser
from calindex.core.parsers.xmlport_parser import XMLportParser

# Registry mapping object kinds to parser classes
PARSER_REGISTRY: dict[ObjectKind, type[BaseParser]] = {
    ObjectKind.TABLE: TableParser,
    ObjectKind.PAGE: PageParser,
    ObjectKind.FORM: PageParser,
    ObjectKind.CODEUNIT: CodeunitParser,
    ObjectKind.REPORT: ReportParser,
    ObjectKind.XMLPORT: XMLportParser,
    ObjectKind.QUERY: QueryParser,
    ObjectKind.MENUSUITE: MenuSuiteParser,
}

_unregistered = [kind.value for kind in ObjectKind if kind not in PARSER_REGISTRY]
if _unregistered:
    raise RuntimeError(f"No parser registered for object kinds: {', '.join(_unregistered)}")


def get_parser(kind: ObjectKind | str) -> BaseParser:
    """Get a parser instance for the given object kind.

    Args:
        kind: Object kind, or a kind token such as "Table" or "xmlport"

    Returns:
        Parser instance for the kind

    Raises:
        ParserNotFoundError: If no parser exists for the kind
    """
    from calindex.core.exceptions import ParserNotFoundError

    try:
        resolved = ObjectKind.from_name(kind)
    except ValueError:
        raise ParserNotFoundError(f"No parser registered for object kind: {kind}")
    return PARSER_REGISTRY[resolved]()


def parse_object(content: str) -> Entity:
    """Parse one object's text, dispatching on the kind in its OBJECT header."""
    text = strip_bom(content)
    header = parse_declaration(text)
    return get_parser(header.kind).parse_string(text)


__all__ = [
    "BaseParser",
    "CodeunitParser",
    "MenuSuiteParser",
    "PageParser",
    "QueryParser",
    "ReportParser",
    "TableParser",
    "XMLportParser",
    "PARSER_REGISTRY",
    "get_parser",
    "parse_object",
]
