"""Tests for the Page parser (Page and Form objects)."""

import pytest

from calindex.core.enums import ObjectKind
from calindex.core.exceptions import MalformedHierarchyError, MissingSectionError
from calindex.core.parsers import PageParser
from calindex.core.parsers.hierarchy import flatten_hierarchy

FORM_TEXT = """OBJECT Form 21 Customer Card
{
  PROPERTIES
  {
    SourceTable=Table18;
  }
  CONTROLS
  {
    { 1   ;0   ;TabControl;
                Name=Tabs }
    { 2   ;1   ;TextBox   ;
                SourceExpr="No." }
  }
  ACTIONS
  {
    { 3   ;0   ;Action    ;
                RunObject=Report 101 }
  }
}
"""


@pytest.fixture
def page(page_text: str):
    return PageParser().parse_string(page_text)


class TestPageProperties:
    """Tests for page-level properties."""

    def test_source_table_and_type(self, page) -> None:
        assert page.kind == ObjectKind.PAGE
        assert page.source_table_id == 3
        assert page.page_type == "List"
        assert page.caption_ml == {"ENU": "Payment Terms"}


class TestPageControls:
    """Tests for the CONTROLS tree."""

    def test_controls_nest_by_level(self, page) -> None:
        assert len(page.controls) == 1
        container = page.controls[0]
        assert (container.id, container.control_type) == (1900000001, "Container")
        group = container.children[0]
        assert group.control_type == "Group"
        assert [c.source_expr for c in group.children] == ["Code", "Description"]

    def test_control_flags(self, page) -> None:
        description = flatten_hierarchy(page.controls)[-1]
        assert description.visible is False
        assert description.editable is None

    def test_orphan_control_raises(self) -> None:
        text = "OBJECT Page 1 Broken\n{\n  CONTROLS\n  {\n    { 1 ;1 ;Field ;SourceExpr=Code }\n  }\n}\n"
        with pytest.raises(MalformedHierarchyError):
            PageParser().parse_string(text)

    def test_missing_controls_raises(self) -> None:
        with pytest.raises(MissingSectionError):
            PageParser().parse_string("OBJECT Page 1 Empty\n{\n  PROPERTIES\n  {\n  }\n}\n")


class TestPageActions:
    """Tests for the action list."""

    def test_action_list_in_properties(self, page) -> None:
        """Newer exports nest actions under ActionList=ACTIONS."""
        assert [a.id for a in page.actions] == [1900000003, 2]
        assert [a.level for a in page.actions] == [0, 1]
        translations = page.actions[1]
        assert translations.name == "Translations"
        assert translations.promoted is True
        assert translations.image == "Translations"
        assert (translations.run_object_kind, translations.run_object_id) == (ObjectKind.PAGE, 757)


class TestForm:
    """Tests for legacy Form objects."""

    def test_form_uses_page_parser(self) -> None:
        form = PageParser().parse_string(FORM_TEXT)
        assert form.kind == ObjectKind.FORM
        assert form.source_table_id == 18
        assert form.controls[0].name == "Tabs"
        assert form.controls[0].children[0].source_expr == '"No."'

    def test_top_level_actions_section(self) -> None:
        form = PageParser().parse_string(FORM_TEXT)
        assert (form.actions[0].run_object_kind, form.actions[0].run_object_id) == (ObjectKind.REPORT, 101)
