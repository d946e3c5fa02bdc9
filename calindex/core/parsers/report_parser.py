"""
Report Parser for C/AL object exports

DATASET (required) holds the data item tree and its columns; see
``dataset.py`` for the accepted layouts. An empty DATASET yields no data
items.
"""

import logging

from calindex.core.enums import ObjectKind
from calindex.core.models import ObjectHeader, ReportObject
from calindex.core.parsers.base import BaseParser
from calindex.core.parsers.dataset import parse_dataset
from calindex.core.parsers.properties import property_flag
from calindex.core.parsers.sections import extract_section, section_body

logger = logging.getLogger('report_parser')


class ReportParser(BaseParser):
    """Parser for Report objects."""

    KINDS = (ObjectKind.REPORT,)

    def parse_body(self, text: str, header: ObjectHeader) -> ReportObject:
        dataset_section = extract_section(
            text, "DATASET", object_name=header.name, kind=header.kind.value, object_id=header.id
        )

        properties = self.parse_properties_section(text)
        dataset = parse_dataset(section_body(dataset_section), section="DATASET")
        report = ReportObject(
            kind=header.kind,
            id=header.id,
            name=header.name,
            metadata=header.metadata,
            properties=properties,
            data_items=dataset.data_items,
            columns=dataset.columns,
            processing_only=property_flag(properties, "ProcessingOnly") is True,
        )

        self.apply_code(report, text)
        logger.debug(f"Report {report.id}: {len(report.columns)} columns, {len(report.procedures)} procedures")
        return report
