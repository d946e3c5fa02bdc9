"""
Data item scanning shared by the Report and Query parsers.

Two layouts are accepted. The line form::

    { DATAITEM "Customer";"Customer"
                {
                  DataItemTable=Table18;
                  column(No;"No.")
                  {
                  }
                  { DATAITEM "Sales Line";"Sales Line"
                              {
                                column(Document_No;"Document No.")
                                {
                                }
                              }
                  }
                }
    }

and the record form written by the development environment::

    { 1   ;    ;DataItem;Customer   ;
               DataItemTable=Table18 }
    { 2   ;1   ;Column  ;No         ;
               DataSource=No. }

Line-form levels come from the relative column of each ``{ DATAITEM``;
record-form levels come from the explicit level column.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from calindex.core.enums import ObjectKind
from calindex.core.models import Column, DataItem, Property
from calindex.core.parsers.grammars import matching_paren, parse_object_reference, split_top_level
from calindex.core.parsers.hierarchy import build_hierarchy, flatten_hierarchy, levels_from_columns
from calindex.core.parsers.properties import (
    coerce_value,
    collapse_whitespace,
    find_code_block_end,
    is_code_value,
    normalize_code,
    open_bracket_depth,
    parse_property_bag,
    property_text,
)
from calindex.core.parsers.sections import brace_delta, split_columns, split_items

logger = logging.getLogger('dataset_parser')

_DATAITEM_RE = re.compile(r'\{\s*DATAITEM\s+("[^"]*"|[^;\s]+)\s*;\s*("[^"]*"|[^;\s]+)', re.IGNORECASE)
_CALL_RE = re.compile(r"^\s*(column|filter)\s*\(", re.IGNORECASE)
_PROPERTY_LINE_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*?)\s*$")
_RECORD_RE = re.compile(r"^\s*\d+\s*;")


@dataclass
class Dataset:
    """Data item tree plus every column in source order"""
    data_items: list[DataItem] = field(default_factory=list)
    columns: list[Column] = field(default_factory=list)


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return text[1:-1]
    return text


def _resolve_table(item: DataItem) -> None:
    """Fill table_id/table_name from DataItemTable."""
    reference = parse_object_reference(property_text(item.properties, "DataItemTable"), ObjectKind.TABLE)
    if reference is None:
        return
    if reference.id is not None:
        item.table_id = reference.id
    if reference.name and not item.table_name:
        item.table_name = reference.name


def read_property_line(line: str) -> Optional[tuple[str, str]]:
    """Read a ``Name=value;`` line; a trailing record closer is dropped."""
    match = _PROPERTY_LINE_RE.match(line)
    if not match:
        return None
    raw = match.group(2)
    if brace_delta(line) < 0:
        raw = raw.rstrip("} \t")
    return match.group(1), raw


def _property_value(raw: str):
    if is_code_value(raw):
        return normalize_code(raw)
    return coerce_value(collapse_whitespace(raw))


def _read_call(line: str) -> Optional[tuple[bool, str, str]]:
    """Read ``column(name;source)`` or ``filter(name;source)``."""
    match = _CALL_RE.match(line)
    if not match:
        return None
    open_index = match.end() - 1
    close_index = matching_paren(line, open_index)
    args = line[open_index + 1:close_index if close_index != -1 else len(line)]
    parts = split_top_level(args, ";", quotes='"')
    name = _unquote(parts[0])
    source = ";".join(parts[1:]).strip()
    return match.group(1).lower() == "filter", name, source


class _LineScanner:
    """Single pass over a line-form body, tracking brace depth per line."""

    def __init__(self, allow_filters: bool, section: str = "DATASET"):
        self.allow_filters = allow_filters
        self.section = section
        self.items: list[DataItem] = []
        self.item_columns: list[int] = []
        self.columns: list[Column] = []
        # (item, depth before its DATAITEM line)
        self.open_items: list[tuple[DataItem, int]] = []
        # (column, depth of its call line)
        self.open_column: Optional[tuple[Column, int]] = None
        # (target, property name, lines so far, value is a trigger)
        self.pending: Optional[tuple[list[Property], str, list[str], bool]] = None
        self.depth = 0

    def scan(self, body: str) -> None:
        for line in body.split("\n"):
            if self.pending is not None:
                in_code = self.pending[3]
                self._continue_pending(line)
                if not in_code:
                    self.depth += brace_delta(line)
                    self._close_blocks(False)
                continue
            fresh_column = self._scan_line(line)
            if self.pending is None or not self.pending[3]:
                self.depth += brace_delta(line)
            self._close_blocks(fresh_column)

    def _current_item(self) -> Optional[DataItem]:
        return self.open_items[-1][0] if self.open_items else None

    def _scan_line(self, line: str) -> bool:
        match = _DATAITEM_RE.search(line)
        if match:
            item = DataItem(
                id=len(self.items) + 1,
                name=_unquote(match.group(1)),
                level=0,
                table_name=_unquote(match.group(2)) or None,
            )
            self.items.append(item)
            self.item_columns.append(match.start())
            self.open_items.append((item, self.depth))
            self.open_column = None
            return False

        call = _read_call(line)
        if call:
            is_filter, name, source = call
            if is_filter and not self.allow_filters:
                logger.debug(f"Ignoring filter({name}) outside a query")
                return False
            item = self._current_item()
            if item is None:
                logger.warning(f"Column {name!r} outside any data item")
                return False
            column = Column(id=len(self.columns) + 1, name=name, source_expr=source, is_filter=is_filter)
            item.columns.append(column)
            self.columns.append(column)
            self.open_column = (column, self.depth)
            return True

        prop = read_property_line(line)
        if prop:
            self._add_property(*prop)
        return False

    def _target_properties(self) -> Optional[list[Property]]:
        if self.open_column and self.depth > self.open_column[1]:
            return self.open_column[0].properties
        item = self._current_item()
        return item.properties if item else None

    def _add_property(self, name: str, raw: str) -> None:
        target = self._target_properties()
        if target is None:
            return
        if is_code_value(raw):
            end = find_code_block_end(raw)
            if end == -1:
                self.pending = (target, name, [raw], True)
                return
            raw = raw[:end]
        elif open_bracket_depth(raw) > 0:
            # Bracketed values such as CaptionML may run over several lines
            self.pending = (target, name, [raw], False)
            return
        elif raw.endswith(";"):
            raw = raw[:-1]
        target.append(Property(name, _property_value(raw)))

    def _continue_pending(self, line: str) -> None:
        target, name, lines, in_code = self.pending
        if in_code:
            lines.append(line)
            raw = "\n".join(lines)
            end = find_code_block_end(raw)
            if end == -1:
                return
            raw = raw[:end]
        else:
            text = line.strip()
            if brace_delta(line) < 0:
                text = text.rstrip("} \t")
            lines.append(text)
            raw = "\n".join(lines)
            if open_bracket_depth(raw) > 0:
                return
            if raw.endswith(";"):
                raw = raw[:-1]
        target.append(Property(name, _property_value(raw)))
        self.pending = None

    def _close_blocks(self, fresh_column: bool) -> None:
        while self.open_items and self.depth <= self.open_items[-1][1]:
            self.open_items.pop()
        if self.open_column and not fresh_column and self.depth <= self.open_column[1]:
            self.open_column = None

    def finish(self) -> Dataset:
        if self.pending is not None:
            target, name, lines, in_code = self.pending
            logger.warning(f"Unterminated value {name!r} in data item section")
            raw = "\n".join(lines)
            target.append(Property(name, normalize_code(raw) if in_code else coerce_value(collapse_whitespace(raw))))
            self.pending = None
        for item, level in zip(self.items, levels_from_columns(self.item_columns)):
            item.level = level
            _resolve_table(item)
        for column in self.columns:
            column.method = property_text(column.properties, "Method")
        return Dataset(build_hierarchy(self.items, section=self.section), self.columns)


def _parse_records(body: str, section: str, allow_filters: bool) -> Dataset:
    items: list[DataItem] = []
    columns: list[Column] = []
    open_items: list[DataItem] = []

    for record in split_items(body):
        record_id, level, record_type, name, rest = split_columns(record.text, 4)
        if not record_id.isdigit() or not (level == "" or level.isdigit()):
            logger.warning(f"Skipping unreadable {section} record at line {record.line_number}")
            continue
        level_no = int(level or 0)
        properties = parse_property_bag(rest)
        record_kind = record_type.lower()

        if record_kind == "dataitem":
            item = DataItem(
                id=int(record_id),
                name=name or property_text(properties, "DataItemVarName") or "",
                level=level_no,
                properties=properties,
            )
            _resolve_table(item)
            if not item.name:
                item.name = item.table_name or f"DataItem{item.id}"
            while open_items and open_items[-1].level >= level_no:
                open_items.pop()
            open_items.append(item)
            items.append(item)
        elif record_kind in ("column", "filter"):
            is_filter = record_kind == "filter"
            if is_filter and not allow_filters:
                continue
            while open_items and open_items[-1].level >= level_no:
                open_items.pop()
            if not open_items:
                logger.warning(f"{record_type} {name!r} outside any data item")
                continue
            column = Column(
                id=int(record_id),
                name=name,
                source_expr=property_text(properties, "SourceExpr") or property_text(properties, "DataSource") or "",
                is_filter=is_filter,
                method=property_text(properties, "Method"),
                properties=properties,
            )
            open_items[-1].columns.append(column)
            columns.append(column)
        else:
            logger.debug(f"Ignoring {record_type} record {record_id} in {section}")

    return Dataset(build_hierarchy(items, section=section), columns)


def parse_dataset(body: str, section: str = "DATASET", allow_filters: bool = False) -> Dataset:
    """Parse a DATASET or ELEMENTS body into data items and columns."""
    stripped = body.lstrip()
    if stripped.startswith("{") and _RECORD_RE.match(stripped[1:]):
        return _parse_records(body, section, allow_filters)

    scanner = _LineScanner(allow_filters, section)
    scanner.scan(body)
    dataset = scanner.finish()
    logger.debug(
        f"{section}: {len(flatten_hierarchy(dataset.data_items))} data items, {len(dataset.columns)} columns"
    )
    return dataset
