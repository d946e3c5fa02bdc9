"""
Page Parser for C/AL object exports

Handles ``OBJECT Page`` and the legacy ``OBJECT Form``. Control and action
records carry an explicit indentation column::

    { 1900000001;0;Container;
                    ContainerType=ContentArea }
    { 2   ;1   ;Group     ;
                    GroupType=Repeater }
    { 3   ;2   ;Field     ;
                    SourceExpr=Code }

Controls are rebuilt into a tree from that column; actions stay flat.
CONTROLS is required.
"""

import logging
import re

from calindex.core.enums import ObjectKind
from calindex.core.models import Action, Control, ObjectHeader, PageObject
from calindex.core.parsers.base import BaseParser
from calindex.core.parsers.grammars import parse_caption_ml, parse_object_reference
from calindex.core.parsers.hierarchy import build_hierarchy
from calindex.core.parsers.properties import parse_property_bag, property_flag, property_text
from calindex.core.parsers.sections import (
    extract_section,
    find_matching_brace,
    find_section,
    section_body,
    split_columns,
    split_items,
)

logger = logging.getLogger('page_parser')

_LEVEL_RE = re.compile(r"^\d*$")
_ACTION_LIST_RE = re.compile(r"ActionList=ACTIONS\s*\{")


class PageParser(BaseParser):
    """Parser for Page and Form objects."""

    KINDS = (ObjectKind.PAGE, ObjectKind.FORM)

    def parse_body(self, text: str, header: ObjectHeader) -> PageObject:
        controls_section = extract_section(
            text, "CONTROLS", object_name=header.name, kind=header.kind.value, object_id=header.id
        )

        properties = self.parse_properties_section(text)
        page = PageObject(
            kind=header.kind,
            id=header.id,
            name=header.name,
            metadata=header.metadata,
            properties=properties,
            source_table_view=property_text(properties, "SourceTableView"),
            page_type=property_text(properties, "PageType"),
            caption_ml=parse_caption_ml(property_text(properties, "CaptionML")),
        )

        source_table = parse_object_reference(property_text(properties, "SourceTable"), ObjectKind.TABLE)
        if source_table and source_table.id is not None:
            page.source_table_id = source_table.id

        controls = self._parse_controls(section_body(controls_section))
        page.controls = build_hierarchy(controls, section="CONTROLS")

        actions_body = self._find_actions(text)
        if actions_body is not None:
            page.actions = self._parse_actions(actions_body)

        self.apply_code(page, text)
        logger.debug(f"{page.kind.value} {page.id}: {len(controls)} controls, {len(page.actions)} actions")
        return page

    def _find_actions(self, text: str) -> str | None:
        """Return the page-level action list body.

        Newer exports nest it in PROPERTIES as ``ActionList=ACTIONS { ... }``;
        older ones have a top-level ACTIONS section.
        """
        section = find_section(text, "ACTIONS")
        if section:
            return section_body(section)
        properties_section = find_section(text, "PROPERTIES")
        if not properties_section:
            return None
        match = _ACTION_LIST_RE.search(properties_section)
        if not match:
            return None
        close_index = find_matching_brace(properties_section, match.end() - 1)
        if close_index == -1:
            return None
        return properties_section[match.end():close_index]

    def _read_record(self, text: str) -> tuple[int, int, str, str] | None:
        """Split a ``{ id ; level ; type ; props }`` record."""
        record_id, level, record_type, rest = split_columns(text, 3)
        if not record_id.isdigit() or not _LEVEL_RE.match(level):
            return None
        return int(record_id), int(level or 0), record_type, rest

    def _parse_controls(self, body: str) -> list[Control]:
        controls = []
        for item in split_items(body):
            record = self._read_record(item.text)
            if record is None:
                logger.warning(f"Skipping unreadable control record at line {item.line_number}")
                continue
            control_id, level, control_type, rest = record
            properties = parse_property_bag(rest)
            controls.append(Control(
                id=control_id,
                control_type=control_type,
                level=level,
                name=property_text(properties, "Name"),
                source_expr=property_text(properties, "SourceExpr"),
                caption_ml=parse_caption_ml(property_text(properties, "CaptionML")),
                visible=property_flag(properties, "Visible"),
                editable=property_flag(properties, "Editable"),
                enabled=property_flag(properties, "Enabled"),
                properties=properties,
            ))
        return controls

    def _parse_actions(self, body: str) -> list[Action]:
        actions = []
        for item in split_items(body):
            record = self._read_record(item.text)
            if record is None:
                logger.warning(f"Skipping unreadable action record at line {item.line_number}")
                continue
            action_id, level, action_type, rest = record
            properties = parse_property_bag(rest)
            action = Action(
                id=action_id,
                action_type=action_type,
                level=level,
                name=property_text(properties, "Name"),
                caption_ml=parse_caption_ml(property_text(properties, "CaptionML")),
                image=property_text(properties, "Image"),
                promoted=property_flag(properties, "Promoted") is True,
                promoted_category=property_text(properties, "PromotedCategory"),
                properties=properties,
            )
            run_object = parse_object_reference(property_text(properties, "RunObject"))
            if run_object:
                action.run_object_kind = run_object.kind
                action.run_object_id = run_object.id
            actions.append(action)
        return actions
