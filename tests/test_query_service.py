"""Tests for the query service operations."""

from calindex.api.schemas.common import INVALID_ARGUMENT, NOT_FOUND
from calindex.core.enums import ObjectKind
from calindex.core.models import CodeunitObject
from calindex.core.parsers import parse_object
from calindex.services.query import (
    QueryContext,
    categorize_procedure,
    find_references,
    get_dependencies,
    get_object,
    get_relation_map,
    get_summary,
    manage_files,
    search_code,
    search_members,
    search_objects,
)

SELF_RELATED_TABLE = """OBJECT Table 50100 Tree Node
{
  FIELDS
  {
    { 1   ;   ;Code                ;Code20        }
    { 2   ;   ;Parent Code         ;Code20        ;TableRelation="Tree Node" }
  }
  KEYS
  {
    {    ;Code                                    ;Clustered=Yes }
  }
}
"""


class TestSearchObjects:
    """Tests for object search and paging."""

    def test_paging(self, loaded_context) -> None:
        response = search_objects(loaded_context, limit=2)
        assert response.success is True
        assert response.data["total"] == 7
        assert len(response.data["objects"]) == 2
        assert response.data["has_more"] is True

    def test_summary_entries(self, loaded_context) -> None:
        response = search_objects(loaded_context, "Payment Terms", kind="table")
        entry = response.data["objects"][0]
        assert entry["kind"] == "Table"
        assert entry["member_counts"]["fields"] == 7
        assert entry["version_list"] == "NAVW17.00"

    def test_full_entries(self, loaded_context) -> None:
        response = search_objects(loaded_context, "Customer*", summary_only=False)
        assert [o["kind"] for o in response.data["objects"]] == ["Query", "Report"]

    def test_invalid_arguments(self, loaded_context) -> None:
        over = search_objects(loaded_context, limit=501)
        assert over.success is False
        assert (over.error.code, over.error.field) == (INVALID_ARGUMENT, "limit")
        bad_kind = search_objects(loaded_context, kind="Widget")
        assert (bad_kind.error.code, bad_kind.error.field) == (INVALID_ARGUMENT, "kind")
        assert search_objects(loaded_context, offset=-1).error.field == "offset"


class TestGetObject:
    """Tests for single object lookup."""

    def test_by_name(self, loaded_context) -> None:
        response = get_object(loaded_context, "table", "payment terms")
        assert response.data["id"] == 3
        assert len(response.data["fields"]) == 7

    def test_summary_only(self, loaded_context) -> None:
        response = get_object(loaded_context, ObjectKind.CODEUNIT, 50000, summary_only=True)
        assert response.data["total_procedures"] == 3

    def test_not_found(self, loaded_context) -> None:
        response = get_object(loaded_context, ObjectKind.TABLE, 999)
        assert response.error.code == NOT_FOUND
        assert response.error.message == "Object not found: Table 999"


class TestSearchMembers:
    """Tests for member search."""

    def test_field_pattern(self, loaded_context) -> None:
        response = search_members(loaded_context, "Payment Terms", "fields", kind="Table", pattern="*Date*")
        assert [m["name"] for m in response.data["members"]] == [
            "Due Date Calculation",
            "Discount Date Calculation",
        ]
        assert response.data["total"] == 2

    def test_tree_members_are_flattened(self, loaded_context) -> None:
        response = search_members(loaded_context, "Payment Terms", "controls", kind="Page", pattern="Code")
        assert response.data["total"] == 1
        assert "children" not in response.data["members"][0]

    def test_procedures_without_body(self, loaded_context) -> None:
        response = search_members(loaded_context, "Payment Terms Mgt.", "procedures")
        assert response.data["total"] == 3
        assert all("body" not in m for m in response.data["members"])

    def test_wrong_category_for_kind(self, loaded_context) -> None:
        response = search_members(loaded_context, "Payment Terms", "controls", kind="Table")
        assert (response.error.code, response.error.field) == (INVALID_ARGUMENT, "member_category")

    def test_unknown_object(self, loaded_context) -> None:
        assert search_members(loaded_context, "Nope", "fields").error.code == NOT_FOUND


class TestSummary:
    """Tests for summaries and procedure categories."""

    def test_procedure_categories(self, loaded_context) -> None:
        response = get_summary(loaded_context, "Payment Terms", kind="Table")
        assert response.data["procedure_categories"] == {
            "validation": ["ValidateDiscount"],
            "calculation": ["CalcDueDate"],
        }
        assert response.data["member_counts"]["keys"] == 2

    def test_no_categories_without_procedures(self, loaded_context) -> None:
        response = get_summary(loaded_context, "Dept - Finance")
        assert "procedure_categories" not in response.data

    def test_categorize_procedure(self) -> None:
        assert categorize_procedure("IsBlocked") == "validation"
        assert categorize_procedure("Issue") == "other"
        assert categorize_procedure("Initialize") == "initialization"
        assert categorize_procedure("InitNewLine") == "initialization"
        assert categorize_procedure("postDocument") == "posting"


class TestReferences:
    """Tests for reference search and dependencies."""

    def test_find_by_name_and_id(self, loaded_context) -> None:
        response = find_references(loaded_context, "Payment Terms")
        assert response.data["total"] == 6

    def test_filters(self, loaded_context) -> None:
        assert find_references(loaded_context, "Payment Terms", reference_type="SourceTable").data["total"] == 1
        assert find_references(loaded_context, "Payment Terms", source_kind="Codeunit").data["total"] == 2
        by_field = find_references(loaded_context, "Customer", field_name="No.")
        assert [r["source_location"] for r in by_field.data["references"]] == ["field:Customer No."]

    def test_unknown_reference_type(self, loaded_context) -> None:
        response = find_references(loaded_context, "Payment Terms", reference_type="Bogus")
        assert response.error.field == "reference_type"

    def test_dependencies(self, loaded_context) -> None:
        table = get_dependencies(loaded_context, "Table", 3)
        assert len(table.data["incoming"]) == 5
        assert len(table.data["outgoing"]) == 4
        page = get_dependencies(loaded_context, "Page", 4, direction="incoming")
        assert [r["source_kind"] for r in page.data["incoming"]] == ["MenuSuite"]
        assert "outgoing" not in page.data

    def test_bad_direction(self, loaded_context) -> None:
        response = get_dependencies(loaded_context, "Table", 3, direction="sideways")
        assert (response.error.code, response.error.field) == (INVALID_ARGUMENT, "direction")

    def test_relation_map(self, loaded_context) -> None:
        assert get_relation_map(loaded_context, table_id=3).data["total_relations"] == 1
        with_formulas = get_relation_map(loaded_context, table_id=3, include_formula_refs=True)
        assert with_formulas.data["total_relations"] == 2
        assert get_relation_map(loaded_context, table_id=999).error.code == NOT_FOUND

    def test_transitive_dependencies(self, loaded_context) -> None:
        data = get_dependencies(loaded_context, "Table", 3, transitive=True).data
        assert [(d["kind"], d["id"]) for d in data["dependents"]] == [
            ("Codeunit", 50000),
            ("MenuSuite", 1010),
            ("Page", 4),
            ("Report", 50001),
            ("XMLport", 50003),
        ]
        assert [(d["kind"], d.get("id"), d["name"]) for d in data["dependencies"]] == [
            ("Table", 98, "98"),
            ("Table", None, "Cust. Ledger Entry"),
            ("Table", None, "Customer"),
        ]

    def test_transitive_follows_direction(self, loaded_context) -> None:
        data = get_dependencies(loaded_context, "Page", 4, direction="incoming", transitive=True).data
        assert [d["kind"] for d in data["dependents"]] == ["MenuSuite"]
        assert "dependencies" not in data
        assert "dependents" not in get_dependencies(loaded_context, "Page", 4).data

    def test_self_reference_is_not_incoming(self) -> None:
        ctx = QueryContext()
        ctx.add(parse_object(SELF_RELATED_TABLE))
        data = get_dependencies(ctx, "Table", 50100).data
        assert data["incoming"] == []
        assert [r["target_name"] for r in data["outgoing"]] == ["Tree Node"]

    def test_relation_map_by_kind(self, loaded_context) -> None:
        assert get_relation_map(loaded_context, kind="Table").data["total_relations"] == 1
        pages = get_relation_map(loaded_context, kind="Page", include_formula_refs=True).data
        assert pages["kind"] == "Page"
        assert [(t["id"], t["relations"]) for t in pages["tables"]] == [(4, [])]
        assert pages["total_relations"] == 0

    def test_relation_map_unknown_kind(self, loaded_context) -> None:
        response = get_relation_map(loaded_context, kind="Widget")
        assert (response.error.code, response.error.field) == (INVALID_ARGUMENT, "kind")


class TestSearchCode:
    """Tests for regex search over procedure bodies."""

    def test_match_location(self, loaded_context) -> None:
        response = search_code(loaded_context, "VALIDATE")
        assert response.data["matches"] == [{
            "kind": "Codeunit",
            "id": 50000,
            "name": "Payment Terms Mgt.",
            "procedure": "ApplyTerms",
            "line_number": 4,
            "line": 'Customer.VALIDATE("Payment Terms Code");',
        }]
        assert response.data["truncated"] is False

    def test_truncation(self, loaded_context) -> None:
        response = search_code(loaded_context, "EXIT", limit=2)
        assert response.data["total"] == 2
        assert response.data["truncated"] is True

    def test_kind_filter(self, loaded_context) -> None:
        assert search_code(loaded_context, "EXIT", kind="Table").data["total"] == 2

    def test_invalid_regex(self, loaded_context) -> None:
        response = search_code(loaded_context, "(")
        assert (response.error.code, response.error.field) == (INVALID_ARGUMENT, "pattern")


class TestManageFiles:
    """Tests for file management actions."""

    def test_list_and_stats(self, loaded_context) -> None:
        assert len(manage_files(loaded_context, "list").data["files"]) == 7
        stats = manage_files(loaded_context, "stats").data
        assert stats["total_objects"] == 7
        assert stats["total_references"] == 19
        assert stats["by_kind"]["MenuSuite"] == 1
        assert stats["graph"]["total_edges"] == 19
        assert stats["graph"]["most_referenced"][0] == "Table Payment Terms (5 refs)"

    def test_clear(self, loaded_context) -> None:
        assert manage_files(loaded_context, "clear").data == {"cleared_objects": 7}
        assert manage_files(loaded_context, "stats").data["total_objects"] == 0

    def test_load(self, fixtures_dir) -> None:
        ctx = QueryContext()
        response = manage_files(ctx, "load", str(fixtures_dir / "table_3.txt"))
        assert response.data["loaded_objects"] == 1
        assert response.data["errors"] == []

    def test_load_errors(self, fixtures_dir) -> None:
        ctx = QueryContext()
        assert manage_files(ctx, "load").error.field == "path"
        assert manage_files(ctx, "load", str(fixtures_dir / "missing")).error.code == NOT_FOUND
        assert manage_files(ctx, "rename").error.field == "action"


class TestContextCaches:
    """Tests for cache invalidation on insert."""

    def test_replacing_an_object_refreshes_references(self, loaded_context) -> None:
        graph = loaded_context.graph
        loaded_context.add(CodeunitObject(kind=ObjectKind.CODEUNIT, id=50000, name="Payment Terms Mgt."))
        assert loaded_context.graph is not graph
        assert len(loaded_context.all_references()) == 14
        assert len(get_dependencies(loaded_context, "Table", 3).data["incoming"]) == 3
