"""
Table Parser for C/AL object exports

Parses ``OBJECT Table`` text into a TableObject:
- FIELDS   ``{ id ; enabled ; name ; type ; properties }``
- KEYS     ``{ enabled ; field,field ; properties }``
- FIELDGROUPS ``{ id ; name ; field,field }``
- PROPERTIES (permissions, captions, lookup pages, table triggers)
- CODE (global variables and procedures)

FIELDS and KEYS are required.
"""

import logging

from calindex.core.enums import ObjectKind
from calindex.core.models import Field, FieldGroup, Key, ObjectHeader, TableObject, find_property
from calindex.core.parsers.base import BaseParser
from calindex.core.parsers.grammars import parse_caption_ml, parse_object_reference
from calindex.core.parsers.properties import (
    collapse_whitespace,
    parse_property_bag,
    property_flag,
    property_text,
)
from calindex.core.parsers.sections import (
    extract_section,
    find_section,
    section_body,
    split_columns,
    split_items,
)

logger = logging.getLogger('table_parser')

TABLE_TRIGGERS = ('OnInsert', 'OnModify', 'OnDelete', 'OnRename')


class TableParser(BaseParser):
    """Parser for Table objects."""

    KINDS = (ObjectKind.TABLE,)

    def parse_body(self, text: str, header: ObjectHeader) -> TableObject:
        fields_section = extract_section(
            text, "FIELDS", object_name=header.name, kind=header.kind.value, object_id=header.id
        )
        keys_section = extract_section(
            text, "KEYS", object_name=header.name, kind=header.kind.value, object_id=header.id
        )

        properties = self.parse_properties_section(text)
        table = TableObject(
            kind=header.kind,
            id=header.id,
            name=header.name,
            metadata=header.metadata,
            properties=properties,
            fields=self._parse_fields(section_body(fields_section)),
            keys=self._parse_keys(section_body(keys_section)),
        )

        groups_section = find_section(text, "FIELDGROUPS")
        if groups_section:
            table.field_groups = self._parse_field_groups(section_body(groups_section))

        table.permissions = property_text(properties, "Permissions")
        table.caption_ml = parse_caption_ml(property_text(properties, "CaptionML"))
        for attr, prop_name in (("lookup_page_id", "LookupPageID"), ("drilldown_page_id", "DrillDownPageID")):
            reference = parse_object_reference(property_text(properties, prop_name), ObjectKind.PAGE)
            if reference and reference.id is not None:
                setattr(table, attr, reference.id)
        for trigger in TABLE_TRIGGERS:
            body = property_text(properties, trigger)
            if body:
                table.triggers[trigger] = body

        self.apply_code(table, text)
        logger.debug(
            f"Table {table.id}: {len(table.fields)} fields, {len(table.keys)} keys, "
            f"{len(table.procedures)} procedures"
        )
        return table

    def _parse_fields(self, body: str) -> list[Field]:
        fields = []
        for item in split_items(body):
            field_id, enabled, name, data_type, rest = split_columns(item.text, 4)
            if not field_id.isdigit() or not name:
                logger.warning(f"Skipping unreadable field record at line {item.line_number}: {item.text[:60]!r}")
                continue
            properties = parse_property_bag(rest)
            fld = Field(
                id=int(field_id),
                name=name,
                data_type=data_type,
                enabled=enabled != "No",
                properties=properties,
                caption_ml=parse_caption_ml(property_text(properties, "CaptionML")),
                field_class=property_text(properties, "FieldClass"),
                description=property_text(properties, "Description"),
                on_validate=property_text(properties, "OnValidate"),
                on_lookup=property_text(properties, "OnLookup"),
            )
            calc_formula = property_text(properties, "CalcFormula")
            if calc_formula:
                fld.calc_formula = collapse_whitespace(calc_formula)
            table_relation = property_text(properties, "TableRelation")
            if table_relation:
                fld.table_relation = collapse_whitespace(table_relation)
            fields.append(fld)
        return fields

    def _parse_keys(self, body: str) -> list[Key]:
        keys = []
        for item in split_items(body):
            enabled, field_list, rest = split_columns(item.text, 2)
            key_fields = [f.strip() for f in field_list.split(",") if f.strip()]
            if not key_fields:
                continue
            properties = parse_property_bag(rest)
            enabled_prop = find_property(properties, "Enabled")
            keys.append(Key(
                fields=key_fields,
                clustered=property_flag(properties, "Clustered") is True,
                unique=property_flag(properties, "Unique") is True,
                enabled=enabled != "No" and not (enabled_prop and enabled_prop.value is False),
                properties=properties,
            ))
        return keys

    def _parse_field_groups(self, body: str) -> list[FieldGroup]:
        groups = []
        for item in split_items(body):
            group_id, name, field_list = split_columns(item.text, 2)
            if not group_id.isdigit():
                continue
            groups.append(FieldGroup(
                id=int(group_id),
                name=name,
                fields=[f.strip() for f in field_list.split(",") if f.strip()],
            ))
        return groups
