"""Tests for the in-memory symbol database."""

import pytest

from calindex.core.enums import ObjectKind
from calindex.core.exceptions import InvalidArgumentError
from calindex.core.models import CodeunitObject, Field, Procedure, TableObject
from calindex.core.symbol_database import SUMMARY_PREFIX, SymbolDatabase, compile_name_pattern


@pytest.fixture
def database(all_objects) -> SymbolDatabase:
    db = SymbolDatabase()
    for entity in all_objects:
        db.insert(entity)
    return db


class TestNamePattern:
    """Tests for wildcard compilation."""

    def test_wildcards(self) -> None:
        regex = compile_name_pattern("Payment*")
        assert regex.fullmatch("Payment Terms")
        assert regex.fullmatch("payment")
        assert not regex.fullmatch("Customer Payment")

    def test_other_characters_are_literal(self) -> None:
        assert compile_name_pattern("Dept - Fin?nce").fullmatch("Dept - Fin?nce")
        assert not compile_name_pattern("Cust.").fullmatch("Custs")


class TestLookup:
    """Tests for get and find_by_name."""

    def test_get_by_id_name_or_digit_string(self, database) -> None:
        assert database.get(ObjectKind.TABLE, 3).name == "Payment Terms"
        assert database.get(ObjectKind.TABLE, "3").id == 3
        assert database.get(ObjectKind.PAGE, "payment terms").id == 4
        assert database.get(ObjectKind.TABLE, 999) is None
        assert database.get(ObjectKind.REPORT, "Payment Terms") is None

    def test_find_by_name_spans_kinds(self, database) -> None:
        found = database.find_by_name("PAYMENT TERMS")
        assert [e.kind for e in found] == [ObjectKind.TABLE, ObjectKind.PAGE]

    def test_len_contains_iter(self, database) -> None:
        assert len(database) == 7
        assert (ObjectKind.CODEUNIT, 50000) in database
        assert [e.id for e in database][:2] == [3, 4]


class TestSearch:
    """Tests for search and paging."""

    def test_search_in_insertion_order(self, database) -> None:
        assert [e.kind for e in database.search("Payment*")] == [
            ObjectKind.TABLE,
            ObjectKind.PAGE,
            ObjectKind.CODEUNIT,
        ]

    def test_kind_filter(self, database) -> None:
        assert [e.id for e in database.search("*", kind=ObjectKind.REPORT)] == [50001]

    def test_paging(self, database) -> None:
        assert [e.id for e in database.search("*", limit=2, offset=1)] == [4, 50000]
        assert database.search("*", offset=50) == []
        assert database.count("*Payment*") == 5

    def test_negative_paging_rejected(self, database) -> None:
        with pytest.raises(InvalidArgumentError):
            database.search("*", limit=-1)
        with pytest.raises(InvalidArgumentError):
            database.search("*", offset=-1)


class TestInsert:
    """Tests for insert, replace and clear."""

    def test_replace_keeps_position_and_drops_stale_name(self, database) -> None:
        renamed = TableObject(kind=ObjectKind.TABLE, id=3, name="Terms of Payment")
        database.insert(renamed)
        assert len(database) == 7
        assert database.entities()[0] is renamed
        assert [e.kind for e in database.find_by_name("Payment Terms")] == [ObjectKind.PAGE]
        assert database.get(ObjectKind.TABLE, "Terms of Payment") is renamed
        assert database.fields_of(3) == []

    def test_replace_drops_procedures(self, database) -> None:
        database.insert(CodeunitObject(kind=ObjectKind.CODEUNIT, id=50000, name="Payment Terms Mgt."))
        assert database.procedures_of(ObjectKind.CODEUNIT, 50000) == []

    def test_clear(self, database) -> None:
        database.clear()
        assert len(database) == 0
        assert database.stats() == {}
        assert database.find_by_name("Payment Terms") == []


class TestAccessors:
    """Tests for secondary indices and summaries."""

    def test_fields_and_procedures(self, database) -> None:
        assert [f.name for f in database.fields_of(3)][:2] == ["Code", "Due Date Calculation"]
        assert [p.name for p in database.procedures_of(ObjectKind.TABLE, 3)] == ["ValidateDiscount", "CalcDueDate"]
        assert database.procedures_of(ObjectKind.MENUSUITE, 1010) == []

    def test_summarize(self, database) -> None:
        summary = database.summarize(ObjectKind.TABLE, 3)
        assert summary.total_fields == 7
        assert summary.total_procedures == 2
        data = summary.to_dict()
        assert data["fields"][0] == {"id": 1, "name": "Code", "data_type": "Code10"}
        assert data["procedures"][0] == "ValidateDiscount(NewDiscount : Decimal) : Boolean"
        assert database.summarize(ObjectKind.TABLE, 999) is None

    def test_stats(self, database) -> None:
        assert database.stats() == {
            "Table": 1,
            "Page": 1,
            "Codeunit": 1,
            "Report": 1,
            "XMLport": 1,
            "Query": 1,
            "MenuSuite": 1,
        }


WIDE_TABLES = [
    (36, "Sales Header"),
    (37, "Sales Line"),
    (38, "Purchase Header"),
    (18, "Customer"),
    (21, "Cust. Ledger Entry"),
    (110, "Sales Shipment Header"),
    (5107, "Sales Header Archive"),
    (287, "Customer Bank Account"),
    (99001, "Header Sales"),
    (112, "Sales Invoice Header"),
]


@pytest.fixture
def wide_database() -> SymbolDatabase:
    db = SymbolDatabase()
    for table_id, name in WIDE_TABLES:
        db.insert(TableObject(kind=ObjectKind.TABLE, id=table_id, name=name))
    return db


class TestSearchSemantics:
    """Tests for wildcard matching, paging windows and renames over many tables."""

    def test_pages_do_not_overlap(self, wide_database) -> None:
        first = [e.id for e in wide_database.search("*", limit=5, offset=0)]
        second = [e.id for e in wide_database.search("*", limit=5, offset=5)]
        assert second == [110, 5107, 287, 99001, 112]
        assert not set(first) & set(second)
        assert first + second == [table_id for table_id, _ in WIDE_TABLES]

    def test_inner_wildcard_needs_prefix_and_suffix(self, wide_database) -> None:
        assert [e.name for e in wide_database.search("Sales*Header")] == [
            "Sales Header",
            "Sales Shipment Header",
            "Sales Invoice Header",
        ]

    def test_pattern_case_is_ignored(self, wide_database) -> None:
        upper = wide_database.search("CUST*")
        assert upper == wide_database.search("cust*")
        assert [e.id for e in upper] == [18, 21, 287]

    def test_rename_on_reinsert(self, wide_database) -> None:
        wide_database.insert(TableObject(kind=ObjectKind.TABLE, id=36, name="Sales Order Header"))
        assert wide_database.search("Sales Header") == []
        assert [e.id for e in wide_database.search("Sales Order Header")] == [36]
        assert len(wide_database) == 10

    def test_summary_keeps_first_members_and_true_totals(self) -> None:
        db = SymbolDatabase()
        db.insert(TableObject(
            kind=ObjectKind.TABLE,
            id=50200,
            name="Wide Table",
            fields=[Field(id=i, name=f"Field {i}", data_type="Integer") for i in range(1, 16)],
            procedures=[Procedure(name=f"Step{i}") for i in range(1, 13)],
        ))
        summary = db.summarize(ObjectKind.TABLE, 50200)
        assert len(summary.fields) == SUMMARY_PREFIX
        assert [f.id for f in summary.fields] == list(range(1, 11))
        assert summary.total_fields == 15
        assert len(summary.procedures) == SUMMARY_PREFIX
        assert summary.total_procedures == 12
