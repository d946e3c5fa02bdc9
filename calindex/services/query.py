"""Query service over a loaded symbol database.

Every operation takes a ``QueryContext`` and returns a ``QueryResponse``.
Lookup misses and bad arguments come back as structured failures rather
than exceptions.
"""

import functools
import re
from typing import Any, Callable, Optional

from loguru import logger

from calindex.api.schemas.common import INVALID_ARGUMENT, NOT_FOUND, QueryResponse
from calindex.config.settings import settings
from calindex.core.enums import MemberCategory, ObjectKind, ReferenceType
from calindex.core.exceptions import (
    FileSizeExceededError,
    InvalidArgumentError,
    ObjectNotFoundError,
    SourcePathNotFoundError,
)
from calindex.core.models import Entity, Key, Procedure, Reference
from calindex.core.parsers.hierarchy import flatten_hierarchy
from calindex.core.symbol_database import ObjectKey, SymbolDatabase, compile_name_pattern
from calindex.services.loader import LoadResult, ObjectLoader
from calindex.services.reference_extractor import extract_references
from calindex.services.reference_graph import NodeKey, ReferenceGraph


class QueryContext:
    """Loaded state shared by the query operations.

    Holds the symbol database, the loader, the set of loaded files, a
    per-object reference cache and a reference graph rebuilt on demand.
    """

    def __init__(self, database: Optional[SymbolDatabase] = None, loader: Optional[ObjectLoader] = None):
        self.database = database or SymbolDatabase()
        self.loader = loader or ObjectLoader()
        self.files: set[str] = set()
        self._references: dict[ObjectKey, list[Reference]] = {}
        self._graph: Optional[ReferenceGraph] = None

    def load(self, path: str, pattern: Optional[str] = None, recursive: bool = True) -> LoadResult:
        """Load a file or directory into the database."""
        result = self.loader.load(path, pattern=pattern, recursive=recursive)
        for entity in result.objects:
            self.add(entity)
        self.files.update(result.files)
        return result

    def add(self, entity: Entity) -> None:
        self.database.insert(entity)
        self._references.pop(entity.key, None)
        self._graph = None

    def clear(self) -> None:
        self.database.clear()
        self.files.clear()
        self._references.clear()
        self._graph = None

    def references_of(self, entity: Entity) -> list[Reference]:
        """Outgoing references of one object, cached per object key."""
        cached = self._references.get(entity.key)
        if cached is None:
            cached = extract_references(entity)
            self._references[entity.key] = cached
        return cached

    def all_references(self) -> list[Reference]:
        references = []
        for entity in self.database.entities():
            references.extend(self.references_of(entity))
        return references

    @property
    def graph(self) -> ReferenceGraph:
        if self._graph is None:
            self._graph = ReferenceGraph(self.database, self.all_references())
        return self._graph


# =============================================================================
# Member categories
# =============================================================================

_CODE_MEMBERS = (MemberCategory.PROCEDURES, MemberCategory.VARIABLES)

# Member collections that exist on each object kind
MEMBER_CATEGORIES: dict[ObjectKind, tuple[MemberCategory, ...]] = {
    ObjectKind.TABLE: (MemberCategory.FIELDS, MemberCategory.KEYS, MemberCategory.FIELD_GROUPS) + _CODE_MEMBERS,
    ObjectKind.PAGE: (MemberCategory.CONTROLS, MemberCategory.ACTIONS) + _CODE_MEMBERS,
    ObjectKind.FORM: (MemberCategory.CONTROLS, MemberCategory.ACTIONS) + _CODE_MEMBERS,
    ObjectKind.CODEUNIT: _CODE_MEMBERS,
    ObjectKind.REPORT: (MemberCategory.DATA_ITEMS, MemberCategory.COLUMNS) + _CODE_MEMBERS,
    ObjectKind.QUERY: (MemberCategory.DATA_ITEMS, MemberCategory.COLUMNS) + _CODE_MEMBERS,
    ObjectKind.XMLPORT: (MemberCategory.NODES,) + _CODE_MEMBERS,
    ObjectKind.MENUSUITE: (MemberCategory.MENU_ITEMS,),
}

_missing = [kind.value for kind in ObjectKind if kind not in MEMBER_CATEGORIES]
if _missing:
    raise RuntimeError(f"No member categories registered for object kinds: {', '.join(_missing)}")

_MEMBER_GETTERS: dict[MemberCategory, Callable[[Any], list]] = {
    MemberCategory.FIELDS: lambda e: e.fields,
    MemberCategory.KEYS: lambda e: e.keys,
    MemberCategory.FIELD_GROUPS: lambda e: e.field_groups,
    MemberCategory.PROCEDURES: lambda e: e.procedures,
    MemberCategory.VARIABLES: lambda e: e.variables,
    MemberCategory.CONTROLS: lambda e: flatten_hierarchy(e.controls),
    MemberCategory.ACTIONS: lambda e: e.actions,
    MemberCategory.DATA_ITEMS: lambda e: flatten_hierarchy(e.data_items),
    MemberCategory.COLUMNS: lambda e: e.columns,
    MemberCategory.NODES: lambda e: flatten_hierarchy(e.nodes),
    MemberCategory.MENU_ITEMS: lambda e: flatten_hierarchy(e.menu_items),
}


def members_of(entity: Entity, category: MemberCategory) -> list:
    """Members of one category; tree members come back in pre-order."""
    return _MEMBER_GETTERS[category](entity)


def member_name(member: Any) -> str:
    if isinstance(member, Key):
        return ",".join(member.fields)
    name = getattr(member, "name", None)
    if name:
        return name
    source_expr = getattr(member, "source_expr", None)
    return source_expr or str(getattr(member, "id", ""))


def _member_dict(member: Any) -> dict:
    if isinstance(member, Procedure):
        return member.to_dict(include_body=False)
    result = member.to_dict()
    result.pop("children", None)
    return result


def member_counts(entity: Entity) -> dict[str, int]:
    return {category.value: len(members_of(entity, category)) for category in MEMBER_CATEGORIES[entity.kind]}


# =============================================================================
# Procedure categories
# =============================================================================

# Checked in order; a procedure lands in the first category whose prefix it has
PROCEDURE_CATEGORIES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("initialization", ("Init", "Initialize", "Setup", "Reset", "Clear", "Create", "New")),
    ("validation", ("Validate", "Check", "Test", "Verify", "Is", "Has", "Can")),
    ("calculation", ("Calc", "Calculate", "Compute", "Recalc", "Update", "Sum")),
    ("lookup", ("Lookup", "Get", "Find", "Select", "Show", "Open", "DrillDown")),
    ("posting", ("Post", "Release", "Reopen", "Archive", "Insert", "Modify", "Delete")),
)
OTHER_CATEGORY = "other"


def _has_prefix(name: str, prefix: str) -> bool:
    """Case-insensitive prefix match that stops at a word boundary."""
    if len(name) < len(prefix) or name[:len(prefix)].lower() != prefix.lower():
        return False
    return len(name) == len(prefix) or not name[len(prefix)].islower()


def categorize_procedure(name: str) -> str:
    for category, prefixes in PROCEDURE_CATEGORIES:
        if any(_has_prefix(name, prefix) for prefix in prefixes):
            return category
    return OTHER_CATEGORY


def categorize_procedures(procedures: list[Procedure]) -> dict[str, list[str]]:
    """Group procedure names by category, omitting empty categories."""
    grouped: dict[str, list[str]] = {}
    for procedure in procedures:
        grouped.setdefault(categorize_procedure(procedure.name), []).append(procedure.name)
    order = [category for category, _ in PROCEDURE_CATEGORIES] + [OTHER_CATEGORY]
    return {category: grouped[category] for category in order if category in grouped}


# =============================================================================
# Argument handling
# =============================================================================

def query_operation(func: Callable[..., Any]) -> Callable[..., QueryResponse]:
    """Wrap an operation's result or failure in a QueryResponse."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> QueryResponse:
        try:
            return QueryResponse.ok(func(*args, **kwargs))
        except (ObjectNotFoundError, SourcePathNotFoundError) as e:
            logger.debug(f"{func.__name__}: {e}")
            return QueryResponse.fail(code=NOT_FOUND, message=str(e))
        except InvalidArgumentError as e:
            logger.debug(f"{func.__name__}: {e}")
            return QueryResponse.fail(code=INVALID_ARGUMENT, message=str(e), field=e.field)
        except FileSizeExceededError as e:
            return QueryResponse.fail(code=INVALID_ARGUMENT, message=str(e), field="path")

    return wrapper


def _resolve_kind(kind: ObjectKind | str | None, field: str = "kind") -> Optional[ObjectKind]:
    if kind is None or kind == "":
        return None
    try:
        return ObjectKind.from_name(kind)
    except ValueError as e:
        raise InvalidArgumentError(str(e), field=field)


def _resolve_limit(limit: Optional[int]) -> int:
    if limit is None:
        return settings.DEFAULT_PAGE_LIMIT
    if limit < 0:
        raise InvalidArgumentError(f"limit must not be negative: {limit}", field="limit")
    if limit > settings.MAX_PAGE_LIMIT:
        raise InvalidArgumentError(
            f"limit {limit} exceeds the maximum of {settings.MAX_PAGE_LIMIT}", field="limit"
        )
    return limit


def _check_offset(offset: int) -> None:
    if offset < 0:
        raise InvalidArgumentError(f"offset must not be negative: {offset}", field="offset")


def _page(items: list, limit: int, offset: int) -> dict:
    page = items[offset:offset + limit]
    return {
        "items": page,
        "total": len(items),
        "limit": limit,
        "offset": offset,
        "has_more": offset + len(page) < len(items),
    }


def _find_entity(ctx: QueryContext, name: str, kind: Optional[ObjectKind]) -> Entity:
    if kind is not None:
        entity = ctx.database.get(kind, name)
    else:
        candidates = ctx.database.find_by_name(name)
        entity = candidates[0] if candidates else None
    if entity is None:
        raise ObjectNotFoundError(name, kind.value if kind else None)
    return entity


def _overview(entity: Entity) -> dict:
    result = {"kind": entity.kind.value, "id": entity.id, "name": entity.name}
    if entity.metadata.version_list:
        result["version_list"] = entity.metadata.version_list
    result["member_counts"] = member_counts(entity)
    return result


# =============================================================================
# Operations
# =============================================================================

@query_operation
def search_objects(
    ctx: QueryContext,
    pattern: str = "*",
    kind: ObjectKind | str | None = None,
    limit: Optional[int] = None,
    offset: int = 0,
    summary_only: bool = True,
) -> dict:
    """Search object names with a ``*`` wildcard pattern."""
    resolved = _resolve_kind(kind)
    page_limit = _resolve_limit(limit)
    _check_offset(offset)
    total = ctx.database.count(pattern, resolved)
    entities = ctx.database.search(pattern, resolved, limit=page_limit, offset=offset)
    return {
        "objects": [_overview(e) if summary_only else e.to_dict() for e in entities],
        "total": total,
        "limit": page_limit,
        "offset": offset,
        "has_more": offset + len(entities) < total,
    }


@query_operation
def get_object(
    ctx: QueryContext,
    kind: ObjectKind | str,
    id_or_name: int | str,
    summary_only: bool = False,
) -> dict:
    """Full definition of one object, or its summary."""
    resolved = _resolve_kind(kind)
    if resolved is None:
        raise InvalidArgumentError("kind is required", field="kind")
    entity = ctx.database.get(resolved, id_or_name)
    if entity is None:
        raise ObjectNotFoundError(str(id_or_name), resolved.value)
    if summary_only:
        return ctx.database.summarize(entity.kind, entity.id).to_dict()
    return entity.to_dict()


@query_operation
def search_members(
    ctx: QueryContext,
    object_name: str,
    member_category: MemberCategory | str,
    kind: ObjectKind | str | None = None,
    pattern: str = "*",
    limit: Optional[int] = None,
    offset: int = 0,
) -> dict:
    """Search one member collection of an object by name."""
    entity = _find_entity(ctx, object_name, _resolve_kind(kind))
    try:
        category = MemberCategory(member_category)
    except ValueError:
        raise InvalidArgumentError(f"Unknown member category: {member_category}", field="member_category")
    allowed = MEMBER_CATEGORIES[entity.kind]
    if category not in allowed:
        raise InvalidArgumentError(
            f"{entity.kind.value} objects have no {category.value}; "
            f"expected one of: {', '.join(c.value for c in allowed)}",
            field="member_category",
        )

    page_limit = _resolve_limit(limit)
    _check_offset(offset)
    regex = compile_name_pattern(pattern)
    matches = [m for m in members_of(entity, category) if regex.fullmatch(member_name(m))]
    page = _page(matches, page_limit, offset)
    page["items"] = [_member_dict(m) for m in page["items"]]
    return {
        "object": {"kind": entity.kind.value, "id": entity.id, "name": entity.name},
        "category": category.value,
        "members": page.pop("items"),
        **page,
    }


@query_operation
def get_summary(ctx: QueryContext, object_name: str, kind: ObjectKind | str | None = None) -> dict:
    """Compact overview with member counts and categorized procedures."""
    entity = _find_entity(ctx, object_name, _resolve_kind(kind))
    result = ctx.database.summarize(entity.kind, entity.id).to_dict()
    result["member_counts"] = member_counts(entity)
    procedures = ctx.database.procedures_of(entity.kind, entity.id)
    if procedures:
        result["procedure_categories"] = categorize_procedures(procedures)
    return result


@query_operation
def find_references(
    ctx: QueryContext,
    target_name: str,
    field_name: Optional[str] = None,
    reference_type: ReferenceType | str | None = None,
    source_kind: ObjectKind | str | None = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> dict:
    """Every reference whose target is ``target_name``.

    Id-only targets are matched through the objects that carry that name.
    """
    resolved_source = _resolve_kind(source_kind, field="source_kind")
    wanted_type = None
    if reference_type:
        try:
            wanted_type = ReferenceType(reference_type)
        except ValueError:
            raise InvalidArgumentError(f"Unknown reference type: {reference_type}", field="reference_type")
    page_limit = _resolve_limit(limit)
    _check_offset(offset)

    target = target_name.strip().lower()
    named_keys = {entity.key for entity in ctx.database.find_by_name(target_name)}

    def matches(reference: Reference) -> bool:
        if reference.target_name.lower() != target and (
            reference.target_id is None or (reference.target_kind, reference.target_id) not in named_keys
        ):
            return False
        if field_name and (reference.target_field or "").lower() != field_name.strip().lower():
            return False
        if wanted_type is not None and reference.reference_type != wanted_type:
            return False
        if resolved_source is not None and reference.source_kind != resolved_source:
            return False
        return True

    found = [r for r in ctx.all_references() if matches(r)]
    page = _page(found, page_limit, offset)
    page["references"] = [r.to_dict() for r in page.pop("items")]
    return page


def _node_dict(graph: ReferenceGraph, key: NodeKey) -> dict:
    kind, ident = key
    name = graph.graph.nodes[key].get("name")
    if isinstance(ident, int):
        return {"kind": kind.value, "id": ident, "name": name}
    return {"kind": kind.value, "name": ident}


def _node_dicts(graph: ReferenceGraph, keys: set[NodeKey]) -> list[dict]:
    ordered = sorted(keys, key=lambda k: (k[0].value, isinstance(k[1], str), k[1]))
    return [_node_dict(graph, key) for key in ordered]


@query_operation
def get_dependencies(
    ctx: QueryContext,
    kind: ObjectKind | str,
    id_or_name: int | str,
    direction: str = "both",
    transitive: bool = False,
) -> dict:
    """Incoming and/or outgoing references of one object.

    Incoming edges exclude the object's references to itself. With
    ``transitive`` the result also lists every object that reaches this one
    (``dependents``) and every object it reaches (``dependencies``).
    """
    if direction not in ("incoming", "outgoing", "both"):
        raise InvalidArgumentError(f"Unknown direction: {direction}", field="direction")
    resolved = _resolve_kind(kind)
    if resolved is None:
        raise InvalidArgumentError("kind is required", field="kind")
    entity = ctx.database.get(resolved, id_or_name)
    if entity is None:
        raise ObjectNotFoundError(str(id_or_name), resolved.value)

    graph = ctx.graph
    result: dict = {"object": {"kind": entity.kind.value, "id": entity.id, "name": entity.name}}
    if direction in ("incoming", "both"):
        incoming = [r for r in graph.incoming(entity.key) if r.source_key != entity.key]
        result["incoming"] = [r.to_dict() for r in incoming]
        if transitive:
            result["dependents"] = _node_dicts(graph, graph.dependents(entity.key))
    if direction in ("outgoing", "both"):
        result["outgoing"] = [r.to_dict() for r in graph.outgoing(entity.key)]
        if transitive:
            result["dependencies"] = _node_dicts(graph, graph.dependencies(entity.key))
    return result


@query_operation
def get_relation_map(
    ctx: QueryContext,
    kind: ObjectKind | str | None = None,
    table_id: Optional[int] = None,
    include_formula_refs: bool = False,
) -> dict:
    """TableRelation (and optionally CalcFormula) edges per object, both directions.

    ``kind`` picks the objects the map covers and defaults to Table;
    ``table_id`` narrows it to one object of that kind.
    """
    map_kind = _resolve_kind(kind) or ObjectKind.TABLE
    if table_id is not None:
        table = ctx.database.get(map_kind, table_id)
        if table is None:
            raise ObjectNotFoundError(str(table_id), map_kind.value)
        tables = [table]
    else:
        tables = ctx.database.by_kind(map_kind)

    wanted = {ReferenceType.TABLE_RELATION}
    if include_formula_refs:
        wanted.add(ReferenceType.CALC_FORMULA)

    graph = ctx.graph
    entries = []
    total = 0
    for table in tables:
        outgoing = [r for r in ctx.references_of(table) if r.reference_type in wanted]
        incoming = [r for r in graph.incoming(table.key) if r.reference_type in wanted]
        total += len(outgoing)
        entries.append({
            "id": table.id,
            "name": table.name,
            "relations": [r.to_dict() for r in outgoing],
            "incoming": [r.to_dict() for r in incoming],
        })
    return {"kind": map_kind.value, "tables": entries, "total_relations": total}


@query_operation
def search_code(
    ctx: QueryContext,
    pattern: str,
    kind: ObjectKind | str | None = None,
    limit: Optional[int] = None,
) -> dict:
    """Regex search over procedure bodies, one match per matching line."""
    try:
        regex = re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise InvalidArgumentError(f"Invalid regular expression: {e}", field="pattern")
    resolved = _resolve_kind(kind)
    page_limit = _resolve_limit(limit)

    entities = ctx.database.by_kind(resolved) if resolved else ctx.database.entities()
    matches = []
    truncated = False
    for entity in entities:
        for procedure in ctx.database.procedures_of(entity.kind, entity.id):
            for line_number, line in enumerate(procedure.body_lines, start=1):
                if not regex.search(line):
                    continue
                if len(matches) >= page_limit:
                    truncated = True
                    break
                matches.append({
                    "kind": entity.kind.value,
                    "id": entity.id,
                    "name": entity.name,
                    "procedure": procedure.name,
                    "line_number": line_number,
                    "line": line.strip(),
                })
            if truncated:
                break
        if truncated:
            break
    return {"matches": matches, "total": len(matches), "truncated": truncated}


FILE_ACTIONS = ("load", "list", "stats", "clear")


@query_operation
def manage_files(ctx: QueryContext, action: str, path: Optional[str] = None) -> dict:
    """Load, list, count or clear the loaded export files."""
    if action not in FILE_ACTIONS:
        raise InvalidArgumentError(
            f"Unknown action: {action}; expected one of: {', '.join(FILE_ACTIONS)}", field="action"
        )

    if action == "load":
        if not path:
            raise InvalidArgumentError("path is required for load", field="path")
        result = ctx.load(path)
        return {
            "loaded_objects": len(result.objects),
            "errors": [error.to_dict() for error in result.errors],
            "stats": result.stats.to_dict(),
        }
    if action == "list":
        return {"files": sorted(ctx.files)}
    if action == "clear":
        removed = len(ctx.database)
        ctx.clear()
        logger.info(f"Cleared {removed} objects")
        return {"cleared_objects": removed}

    return {
        "total_files": len(ctx.files),
        "total_objects": len(ctx.database),
        "by_kind": ctx.database.stats(),
        "total_references": len(ctx.all_references()),
        "graph": ctx.graph.metrics(),
    }
