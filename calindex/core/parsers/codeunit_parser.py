"""Codeunit Parser for C/AL object exports.

A codeunit is its PROPERTIES (OnRun trigger, TableNo, Subtype) plus the
CODE section, which is required.
"""

import logging

from calindex.core.enums import ObjectKind
from calindex.core.models import CodeunitObject, ObjectHeader
from calindex.core.parsers.base import BaseParser
from calindex.core.parsers.grammars import parse_object_reference
from calindex.core.parsers.properties import property_flag, property_text
from calindex.core.parsers.sections import extract_section

logger = logging.getLogger('codeunit_parser')


class CodeunitParser(BaseParser):
    """Parser for Codeunit objects."""

    KINDS = (ObjectKind.CODEUNIT,)

    def parse_body(self, text: str, header: ObjectHeader) -> CodeunitObject:
        extract_section(
            text, "CODE", object_name=header.name, kind=header.kind.value, object_id=header.id
        )

        properties = self.parse_properties_section(text)
        codeunit = CodeunitObject(
            kind=header.kind,
            id=header.id,
            name=header.name,
            metadata=header.metadata,
            properties=properties,
            subtype=property_text(properties, "Subtype"),
            single_instance=property_flag(properties, "SingleInstance") is True,
        )

        table_no = parse_object_reference(property_text(properties, "TableNo"), ObjectKind.TABLE)
        if table_no and table_no.id is not None:
            codeunit.table_no = table_no.id

        self.apply_code(codeunit, text)
        logger.debug(
            f"Codeunit {codeunit.id}: {len(codeunit.variables)} variables, "
            f"{len(codeunit.procedures)} procedures"
        )
        return codeunit
