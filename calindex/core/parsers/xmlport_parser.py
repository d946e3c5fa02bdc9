"""
XMLport Parser for C/AL object exports

ELEMENTS (required) holds the node tree. Nodes are opened by
``{ ELEMENT;name;type ;`` lines and followed by their property lines::

    { ELEMENT;Root;Element ;
                SourceTable="Customer";
                { ELEMENT;Code;Field ;
                          SourceField=Customer.Code }
    }

Levels come from the relative column of each node's opening brace.
The record form ``{ [{guid}];level ;name ;Element|Attribute ;Text|Table|Field ; props }``
is also accepted, using its explicit level column.
"""

import logging
import re
from typing import Optional

from calindex.core.enums import ObjectKind, PortNodeType
from calindex.core.models import ObjectHeader, PortNode, Property, XMLportObject
from calindex.core.parsers.base import BaseParser
from calindex.core.parsers.dataset import read_property_line
from calindex.core.parsers.grammars import parse_object_reference
from calindex.core.parsers.hierarchy import build_hierarchy, flatten_hierarchy, levels_from_columns
from calindex.core.parsers.properties import (
    coerce_value,
    collapse_whitespace,
    open_bracket_depth,
    parse_property_bag,
    property_text,
)
from calindex.core.parsers.sections import (
    brace_delta,
    extract_section,
    section_body,
    split_columns,
    split_items,
)

logger = logging.getLogger('xmlport_parser')

_ELEMENT_RE = re.compile(r"\{\s*ELEMENT\s*;([^;]+);\s*(Element|Field|Text|Attribute)\s*(?:;|\}|$)", re.IGNORECASE)
_GUID_RECORD_RE = re.compile(r"^\s*\[\{")

_NODE_TYPES = {node_type.value.lower(): node_type for node_type in PortNodeType}


def _bind_source(node: PortNode) -> None:
    """Fill table and source field from the node's properties."""
    reference = parse_object_reference(property_text(node.properties, "SourceTable"), ObjectKind.TABLE)
    if reference:
        node.table_id = reference.id
        node.table_name = reference.name
    source_field = property_text(node.properties, "SourceField")
    if source_field:
        node.source_field = source_field


def _add_line_property(node: PortNode, name: str, raw: str) -> None:
    raw = raw[:-1] if raw.endswith(";") else raw
    node.properties.append(Property(name, coerce_value(collapse_whitespace(raw))))


class XMLportParser(BaseParser):
    """Parser for XMLport objects."""

    KINDS = (ObjectKind.XMLPORT,)

    def parse_body(self, text: str, header: ObjectHeader) -> XMLportObject:
        elements_section = extract_section(
            text, "ELEMENTS", object_name=header.name, kind=header.kind.value, object_id=header.id
        )

        properties = self.parse_properties_section(text)
        xmlport = XMLportObject(
            kind=header.kind,
            id=header.id,
            name=header.name,
            metadata=header.metadata,
            properties=properties,
            direction=property_text(properties, "Direction") or "Both",
            format=property_text(properties, "Format") or "Xml",
        )

        body = section_body(elements_section)
        if _GUID_RECORD_RE.match(body.lstrip()[1:]):
            nodes = self._parse_records(body)
        else:
            nodes = self._parse_lines(body)
        for node in nodes:
            _bind_source(node)
        xmlport.nodes = build_hierarchy(nodes, section="ELEMENTS")

        self.apply_code(xmlport, text)
        logger.debug(f"XMLport {xmlport.id}: {len(flatten_hierarchy(xmlport.nodes))} nodes")
        return xmlport

    def _parse_lines(self, body: str) -> list[PortNode]:
        nodes: list[PortNode] = []
        columns: list[int] = []
        # (node, depth before its ELEMENT line)
        open_nodes: list[tuple[PortNode, int]] = []
        # Bracketed value still open: (node, property name, lines so far)
        pending: Optional[tuple[PortNode, str, list[str]]] = None
        depth = 0

        for line in body.split("\n"):
            if pending is not None:
                node, name, lines = pending
                text = line.strip()
                if brace_delta(line) < 0:
                    text = text.rstrip("} \t")
                lines.append(text)
                if open_bracket_depth("\n".join(lines)) == 0:
                    _add_line_property(node, name, "\n".join(lines))
                    pending = None
            else:
                match = _ELEMENT_RE.search(line)
                if match:
                    node = PortNode(
                        id=len(nodes) + 1,
                        name=match.group(1).strip(),
                        node_type=_NODE_TYPES[match.group(2).lower()],
                        level=0,
                    )
                    nodes.append(node)
                    columns.append(match.start())
                    open_nodes.append((node, depth))
                    rest = line[match.end():]
                    prop = read_property_line(rest) if "=" in rest else None
                else:
                    prop = read_property_line(line)

                if prop and open_nodes:
                    name, raw = prop
                    if open_bracket_depth(raw) > 0:
                        pending = (open_nodes[-1][0], name, [raw])
                    else:
                        _add_line_property(open_nodes[-1][0], name, raw)

            depth += brace_delta(line)
            while open_nodes and depth <= open_nodes[-1][1]:
                open_nodes.pop()

        if pending is not None:
            node, name, lines = pending
            logger.warning(f"Unterminated value {name!r} on node {node.name!r}")
            _add_line_property(node, name, "\n".join(lines))

        for node, level in zip(nodes, levels_from_columns(columns)):
            node.level = level
        return nodes

    def _parse_records(self, body: str) -> list[PortNode]:
        nodes = []
        for item in split_items(body):
            record = self._read_record(item.text)
            if record is None:
                logger.warning(f"Skipping unreadable ELEMENTS record at line {item.line_number}")
                continue
            level, name, node_kind, source_type, rest = record
            if node_kind.lower() == "attribute":
                node_type = PortNodeType.ATTRIBUTE
            else:
                node_type = _NODE_TYPES.get(source_type.lower(), PortNodeType.ELEMENT)
                if node_type is PortNodeType.ATTRIBUTE:
                    node_type = PortNodeType.ELEMENT
            nodes.append(PortNode(
                id=len(nodes) + 1,
                name=name,
                node_type=node_type,
                level=level,
                properties=parse_property_bag(rest),
            ))
        return nodes

    def _read_record(self, text: str) -> Optional[tuple[int, str, str, str, str]]:
        """Split ``[{guid}];level ;name ;node type ;source type ; props``."""
        guid_end = text.find("]")
        if guid_end == -1:
            return None
        rest = text[guid_end + 1:].lstrip()
        if not rest.startswith(";"):
            return None
        level, name, node_kind, source_type, props = split_columns(rest[1:], 4)
        if not (level == "" or level.isdigit()) or not name:
            return None
        return int(level or 0), name, node_kind, source_type, props
