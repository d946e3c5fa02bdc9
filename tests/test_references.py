"""Tests for reference extraction and the reference graph."""

import pytest

from calindex.core.enums import ObjectKind, ReferenceType
from calindex.core.parsers import parse_object
from calindex.core.symbol_database import SymbolDatabase
from calindex.services.reference_extractor import EXTRACTORS, extract_references
from calindex.services.reference_graph import ReferenceGraph


def _summary(references) -> list[tuple]:
    return [
        (r.source_location, r.target_kind, r.target_id, r.target_name, r.reference_type)
        for r in references
    ]


class TestExtractors:
    """Tests for per-kind reference extraction."""

    def test_every_kind_has_an_extractor(self) -> None:
        assert set(EXTRACTORS) == set(ObjectKind)

    def test_table_references(self, table_text: str) -> None:
        references = extract_references(parse_object(table_text))
        assert _summary(references) == [
            ("field:Customer No.", ObjectKind.TABLE, None, "Customer", ReferenceType.TABLE_RELATION),
            ("field:Balance", ObjectKind.TABLE, None, "Cust. Ledger Entry", ReferenceType.CALC_FORMULA),
            ("variable:GLSetup", ObjectKind.TABLE, 98, "98", ReferenceType.RECORD_VARIABLE),
            ("variable:CalcDueDate.Cust", ObjectKind.TABLE, None, "Customer", ReferenceType.RECORD_VARIABLE),
        ]
        assert references[0].target_field == "No."
        assert references[1].target_field == "Amount"
        assert references[0].source_key == (ObjectKind.TABLE, 3)

    def test_page_references(self, page_text: str) -> None:
        assert _summary(extract_references(parse_object(page_text))) == [
            ("property:SourceTable", ObjectKind.TABLE, 3, "3", ReferenceType.SOURCE_TABLE),
            ("action:Translations", ObjectKind.PAGE, 757, "757", ReferenceType.RUN_OBJECT),
        ]

    def test_codeunit_references(self, codeunit_text: str) -> None:
        assert _summary(extract_references(parse_object(codeunit_text))) == [
            ("variable:PaymentTerms", ObjectKind.TABLE, 3, "3", ReferenceType.RECORD_VARIABLE),
            ("variable:CustomerCard", ObjectKind.PAGE, 21, "21", ReferenceType.OBJECT_VARIABLE),
            ("variable:SalesPost", ObjectKind.CODEUNIT, 80, "80", ReferenceType.OBJECT_VARIABLE),
            ("variable:ApplyTerms.Customer", ObjectKind.TABLE, 18, "18", ReferenceType.RECORD_VARIABLE),
            ("property:TableNo", ObjectKind.TABLE, 3, "3", ReferenceType.TABLE_NO),
        ]

    def test_report_references(self, report_text: str) -> None:
        assert _summary(extract_references(parse_object(report_text))) == [
            ("dataitem:Payment Terms", ObjectKind.TABLE, 3, "Payment Terms", ReferenceType.DATA_ITEM_TABLE),
            ("dataitem:Customer", ObjectKind.TABLE, 18, "Customer", ReferenceType.DATA_ITEM_TABLE),
        ]

    def test_query_references(self, query_text: str) -> None:
        references = extract_references(parse_object(query_text))
        assert [(r.target_id, r.reference_type) for r in references] == [
            (18, ReferenceType.DATA_ITEM_TABLE),
            (21, ReferenceType.DATA_ITEM_TABLE),
        ]

    def test_xmlport_references(self, xmlport_text: str) -> None:
        """Nodes without a source table produce no edge."""
        assert _summary(extract_references(parse_object(xmlport_text))) == [
            ("node:PaymentTerms", ObjectKind.TABLE, 3, "3", ReferenceType.PORT_NODE_TABLE),
        ]

    def test_menusuite_references(self, menusuite_text: str) -> None:
        assert _summary(extract_references(parse_object(menusuite_text))) == [
            ("menuitem:Payment Terms", ObjectKind.PAGE, 4, "4", ReferenceType.RUN_OBJECT),
            ("menuitem:Payment Terms Report", ObjectKind.REPORT, 50001, "50001", ReferenceType.RUN_OBJECT),
            ("menuitem:Export Payment Terms", ObjectKind.XMLPORT, 50003, "50003", ReferenceType.RUN_OBJECT),
        ]

    def test_reference_dict(self, page_text: str) -> None:
        data = extract_references(parse_object(page_text))[0].to_dict()
        assert data == {
            "source_kind": "Page",
            "source_id": 4,
            "source_name": "Payment Terms",
            "source_location": "property:SourceTable",
            "target_kind": "Table",
            "target_id": 3,
            "target_name": "3",
            "reference_type": "SourceTable",
        }


@pytest.fixture
def graph(all_objects) -> ReferenceGraph:
    database = SymbolDatabase()
    references = []
    for entity in all_objects:
        database.insert(entity)
        references.extend(extract_references(entity))
    return ReferenceGraph(database, references)


class TestReferenceGraph:
    """Tests for the NetworkX reference graph."""

    def test_incoming_edges(self, graph) -> None:
        incoming = graph.incoming((ObjectKind.TABLE, 3))
        assert sorted(r.source_kind.value for r in incoming) == [
            "Codeunit",
            "Codeunit",
            "Page",
            "Report",
            "XMLport",
        ]

    def test_outgoing_edges(self, graph) -> None:
        assert len(graph.outgoing((ObjectKind.TABLE, 3))) == 4
        assert graph.outgoing((ObjectKind.TABLE, 12345)) == []

    def test_name_targets_resolve_or_stay_named(self, graph) -> None:
        """Unknown names get their own unresolved node."""
        node = (ObjectKind.TABLE, "Customer")
        assert node in graph.graph
        assert graph.graph.nodes[node]["resolved"] is False

    def test_transitive_queries(self, graph) -> None:
        """The menu reaches the table through the page."""
        menu = (ObjectKind.MENUSUITE, 1010)
        assert (ObjectKind.TABLE, 3) in graph.dependencies(menu)
        assert menu in graph.dependents((ObjectKind.TABLE, 3))

    def test_metrics(self, graph) -> None:
        metrics = graph.metrics()
        assert metrics["total_edges"] == 19
        assert metrics["most_referenced"][0] == "Table Payment Terms (5 refs)"
