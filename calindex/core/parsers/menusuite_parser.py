"""
MenuSuite Parser for C/AL object exports

MENUITEMS (required) holds ``MENUITEM(prop=value;...)`` calls, which may
span lines, and bare ``SEPARATOR`` entries. An item followed by a brace
block is a folder whose children sit inside the block::

    MENUITEM(Text=Setup;
             IsFolder=Yes)
    {
      MENUITEM(Text=Payment Terms;
               RunObject=Page 4)
    }

The level of an item is its brace depth.
"""

import logging
import re
from typing import Optional

from calindex.core.enums import ObjectKind
from calindex.core.models import MenuItem, MenuSuiteObject, ObjectHeader, Property
from calindex.core.parsers.base import BaseParser
from calindex.core.parsers.grammars import matching_paren, parse_object_reference, split_top_level
from calindex.core.parsers.hierarchy import build_hierarchy, flatten_hierarchy
from calindex.core.parsers.properties import coerce_value, collapse_whitespace, property_flag, property_text
from calindex.core.parsers.sections import extract_section, section_body

logger = logging.getLogger('menusuite_parser')

_MENUITEM_RE = re.compile(r"MENUITEM\s*\(", re.IGNORECASE)
_SEPARATOR_RE = re.compile(r"SEPARATOR\b", re.IGNORECASE)

SEPARATOR_NAME = "SEPARATOR"


def parse_menu_properties(inner: str) -> list[Property]:
    """Parse the ``prop=value;prop=value`` run inside MENUITEM(...)."""
    properties = []
    for part in split_top_level(inner, ";", quotes='"'):
        name, sep, value = part.partition("=")
        if not sep or not name.strip():
            continue
        properties.append(Property(name.strip(), coerce_value(collapse_whitespace(value))))
    return properties


class MenuSuiteParser(BaseParser):
    """Parser for MenuSuite objects."""

    KINDS = (ObjectKind.MENUSUITE,)

    def parse_body(self, text: str, header: ObjectHeader) -> MenuSuiteObject:
        items_section = extract_section(
            text, "MENUITEMS", object_name=header.name, kind=header.kind.value, object_id=header.id
        )

        menu = MenuSuiteObject(
            kind=header.kind,
            id=header.id,
            name=header.name,
            metadata=header.metadata,
            properties=self.parse_properties_section(text),
        )
        items = self._parse_items(section_body(items_section))
        menu.menu_items = build_hierarchy(items, section="MENUITEMS")
        logger.debug(f"MenuSuite {menu.id}: {len(flatten_hierarchy(menu.menu_items))} menu items")
        return menu

    def _parse_items(self, body: str) -> list[MenuItem]:
        items: list[MenuItem] = []
        depth = 0
        # Item a following brace block would belong to
        last_item: Optional[MenuItem] = None
        i = 0
        n = len(body)

        while i < n:
            ch = body[i]
            if ch.isspace():
                i += 1
                continue
            if ch == "{":
                if last_item is not None and last_item.level == depth:
                    last_item.is_folder = True
                depth += 1
                last_item = None
                i += 1
                continue
            if ch == "}":
                depth = max(depth - 1, 0)
                last_item = None
                i += 1
                continue

            match = _MENUITEM_RE.match(body, i)
            if match:
                close_index = matching_paren(body, match.end() - 1)
                if close_index == -1:
                    logger.warning(f"Unterminated MENUITEM at offset {i}")
                    break
                item = self._build_item(len(items) + 1, depth, body[match.end():close_index])
                items.append(item)
                last_item = item
                i = close_index + 1
                continue

            match = _SEPARATOR_RE.match(body, i)
            if match:
                item = MenuItem(id=len(items) + 1, name=SEPARATOR_NAME, level=depth, is_separator=True)
                items.append(item)
                last_item = item
                i = match.end()
                continue

            # Unknown token; skip to the end of the line
            line_end = body.find("\n", i)
            logger.debug(f"Skipping menu text: {body[i:line_end if line_end != -1 else n]!r}")
            i = n if line_end == -1 else line_end + 1

        return items

    def _build_item(self, item_id: int, level: int, inner: str) -> MenuItem:
        properties = parse_menu_properties(inner)
        item = MenuItem(
            id=item_id,
            name=property_text(properties, "Text") or f"MenuItem_{item_id}",
            level=level,
            is_folder=property_flag(properties, "IsFolder") is True,
            properties=properties,
        )
        run_object = parse_object_reference(property_text(properties, "RunObject"))
        if run_object:
            item.run_object_kind = run_object.kind
            item.run_object_id = run_object.id
        return item
