"""Tests for parser dispatch."""

import pytest

from calindex.core.enums import ObjectKind
from calindex.core.exceptions import InvalidDeclarationError, ParserNotFoundError
from calindex.core.models import (
    CodeunitObject,
    MenuSuiteObject,
    PageObject,
    QueryObject,
    ReportObject,
    TableObject,
    XMLportObject,
)
from calindex.core.parsers import PARSER_REGISTRY, PageParser, get_parser, parse_object


class TestRegistry:
    """Tests for PARSER_REGISTRY and get_parser."""

    def test_every_kind_has_a_parser(self) -> None:
        assert set(PARSER_REGISTRY) == set(ObjectKind)

    def test_form_shares_page_parser(self) -> None:
        assert PARSER_REGISTRY[ObjectKind.FORM] is PageParser

    def test_get_parser_accepts_tokens(self) -> None:
        assert isinstance(get_parser("xmlport"), PARSER_REGISTRY[ObjectKind.XMLPORT])
        assert isinstance(get_parser(ObjectKind.TABLE), PARSER_REGISTRY[ObjectKind.TABLE])

    def test_unknown_kind(self) -> None:
        with pytest.raises(ParserNotFoundError):
            get_parser("Dataport")


class TestParseObject:
    """Tests for header-based dispatch."""

    def test_dispatches_on_header(self, all_objects) -> None:
        assert [type(o) for o in all_objects] == [
            TableObject,
            PageObject,
            CodeunitObject,
            ReportObject,
            QueryObject,
            XMLportObject,
            MenuSuiteObject,
        ]

    def test_invalid_header(self) -> None:
        with pytest.raises(InvalidDeclarationError):
            parse_object("not an object")

    def test_byte_order_mark(self, codeunit_text: str) -> None:
        assert parse_object("\ufeff" + codeunit_text).id == 50000


class TestParseFile:
    """Tests for parsing straight from disk."""

    def test_parse_file(self, fixtures_dir) -> None:
        page = get_parser("Page").parse_file(str(fixtures_dir / "page_4.txt"))
        assert (page.id, page.name) == (4, "Payment Terms")

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            get_parser("Table").parse_file(str(tmp_path / "missing.txt"))
