"""
Query Parser for C/AL object exports

ELEMENTS (required) uses the same data item layouts as a report DATASET,
with ``filter(name;source)`` lines (or Filter records) marking filter
columns.
"""

import logging

from calindex.core.enums import ObjectKind
from calindex.core.models import ObjectHeader, QueryObject
from calindex.core.parsers.base import BaseParser
from calindex.core.parsers.dataset import parse_dataset
from calindex.core.parsers.properties import property_text
from calindex.core.parsers.sections import extract_section, section_body

logger = logging.getLogger('query_parser')


class QueryParser(BaseParser):
    """Parser for Query objects."""

    KINDS = (ObjectKind.QUERY,)

    def parse_body(self, text: str, header: ObjectHeader) -> QueryObject:
        elements_section = extract_section(
            text, "ELEMENTS", object_name=header.name, kind=header.kind.value, object_id=header.id
        )

        properties = self.parse_properties_section(text)
        dataset = parse_dataset(section_body(elements_section), section="ELEMENTS", allow_filters=True)
        query = QueryObject(
            kind=header.kind,
            id=header.id,
            name=header.name,
            metadata=header.metadata,
            properties=properties,
            data_items=dataset.data_items,
            columns=dataset.columns,
            query_type=property_text(properties, "QueryType"),
            order_by=property_text(properties, "OrderBy"),
        )

        self.apply_code(query, text)
        logger.debug(f"Query {query.id}: {len(query.columns)} columns")
        return query
