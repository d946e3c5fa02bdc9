"""Tests for section extraction and the OBJECT header.

Covers:
- find_section() / extract_section()
- split_items() / split_columns()
- parse_declaration() / parse_metadata()
"""

import pytest

from calindex.core.enums import ObjectKind
from calindex.core.exceptions import InvalidDeclarationError, MissingSectionError
from calindex.core.parsers.declaration import parse_declaration, parse_metadata
from calindex.core.parsers.sections import (
    brace_delta,
    extract_section,
    find_matching_brace,
    find_section,
    section_body,
    split_columns,
    split_items,
    strip_bom,
)

MINIMAL = """OBJECT Table 1 Test
{
  OBJECT-PROPERTIES
  {
    Date=01.01.20;
  }
  FIELDS
  {
    { 1   ;   ;Code                ;Code10        }
  }
}
"""


class TestFindSection:
    """Tests for locating named sections."""

    def test_returns_section_through_matching_brace(self) -> None:
        """Section text runs from the keyword to its closing brace."""
        section = find_section(MINIMAL, "FIELDS")
        assert section.startswith("FIELDS")
        assert section.endswith("}")
        assert "Code10" in section

    def test_properties_does_not_match_object_properties(self) -> None:
        """PROPERTIES must start its line, so OBJECT-PROPERTIES is skipped."""
        assert find_section(MINIMAL, "PROPERTIES") is None

    def test_absent_section_is_none(self) -> None:
        """A missing keyword yields None."""
        assert find_section(MINIMAL, "KEYS") is None

    def test_nested_braces_do_not_end_section(self) -> None:
        """Inner record braces are counted."""
        body = section_body(find_section(MINIMAL, "FIELDS"))
        assert "{ 1" in body


class TestExtractSection:
    """Tests for required section extraction."""

    def test_missing_section_raises(self) -> None:
        """A required section that is absent raises MissingSectionError."""
        with pytest.raises(MissingSectionError) as exc_info:
            extract_section(MINIMAL, "KEYS", object_name="Test")
        assert exc_info.value.section == "KEYS"
        assert "Test" in str(exc_info.value)

    def test_unterminated_section_raises(self) -> None:
        """A section whose brace never closes is reported."""
        with pytest.raises(MissingSectionError) as exc_info:
            extract_section("FIELDS\n{\n  { 1 ;\n", "FIELDS")
        assert "no matching closing brace" in str(exc_info.value)


class TestSplitItems:
    """Tests for splitting a section body into records."""

    def test_splits_top_level_records(self) -> None:
        """Nested braces stay inside their record."""
        items = split_items("\n  { 1 ;a }\n  { 2 ;{nested} }\n")
        assert [item.text for item in items] == [" 1 ;a ", " 2 ;{nested} "]

    def test_records_carry_column_and_line(self) -> None:
        """Column and line number refer to the opening brace."""
        items = split_items("\n  { 1 ;a }\n      { 2 ;b }\n")
        assert (items[0].column, items[0].line_number) == (2, 2)
        assert (items[1].column, items[1].line_number) == (6, 3)

    def test_split_columns_keeps_remainder(self) -> None:
        """Only the requested columns are split off."""
        assert split_columns("1 ; a ;b;rest;x", 2) == ["1", "a", "b;rest;x"]

    def test_split_columns_pads_short_records(self) -> None:
        """Missing columns come back empty."""
        assert split_columns("1", 2) == ["1", "", ""]


class TestBraceMatching:
    """Tests for brace matching around literals."""

    def test_braces_in_strings_are_ignored(self) -> None:
        text = "{ ERROR('Missing }'); x := '{'; }"
        assert find_matching_brace(text, 0) == len(text) - 1

    def test_doubled_quote_stays_inside_literal(self) -> None:
        text = "{ MESSAGE('It''s } here'); }"
        assert find_matching_brace(text, 0) == len(text) - 1

    def test_lone_apostrophe_is_plain_text(self) -> None:
        """A quote with no partner on its line does not swallow the closer."""
        text = "{ 1 ;Customer's Name }\n{ 2 ;b }"
        assert find_matching_brace(text, 0) == text.index("}")

    def test_brace_delta(self) -> None:
        assert brace_delta("  column(No;'}') }") == -1
        assert brace_delta("{ DATAITEM Customer;Customer") == 1


class TestParseDeclaration:
    """Tests for the OBJECT header line."""

    def test_parses_header_and_metadata(self, table_text: str) -> None:
        """Kind, id, name and metadata are read."""
        header = parse_declaration(table_text)
        assert header.kind == ObjectKind.TABLE
        assert header.id == 3
        assert header.name == "Payment Terms"
        assert header.metadata.date == "15.09.12"
        assert header.metadata.time == "12:00:00"
        assert header.metadata.version_list == "NAVW17.00"
        assert header.metadata.modified is True

    def test_name_keeps_inner_punctuation(self) -> None:
        """Everything after the id is the name."""
        header = parse_declaration("OBJECT MenuSuite 1010 Dept - Finance\n{\n}\n")
        assert header.kind == ObjectKind.MENUSUITE
        assert header.name == "Dept - Finance"

    def test_strips_byte_order_mark(self) -> None:
        """A leading BOM is ignored."""
        header = parse_declaration("\ufeffOBJECT Codeunit 80 Sales-Post\n{\n}\n")
        assert header.kind == ObjectKind.CODEUNIT
        assert header.id == 80

    @pytest.mark.parametrize(
        "line",
        [
            "OBJECT Widget 1 Test",
            "OBJECT table 1 Test",
            "OBJECT Table abc Test",
            "OBJECT Table 1",
            "Table 1 Test",
            "",
        ],
    )
    def test_invalid_headers_raise(self, line: str) -> None:
        """Unknown kinds, bad ids, empty names and non-headers are rejected."""
        with pytest.raises(InvalidDeclarationError):
            parse_declaration(line)

    def test_metadata_absent_fields_stay_none(self) -> None:
        """An object without OBJECT-PROPERTIES has empty metadata."""
        metadata = parse_metadata("OBJECT Table 1 Test\n{\n}\n")
        assert metadata.is_empty
        assert metadata.to_dict() == {}

    def test_strip_bom_only_removes_leading_marker(self) -> None:
        assert strip_bom("\ufeffabc") == "abc"
        assert strip_bom("a\ufeffbc") == "a\ufeffbc"
