"""Reference extractors for each object kind.

Every extractor takes one parsed entity and returns its outgoing reference
edges in source order. Unreadable expressions are skipped; no extractor
raises on entity content.
"""

import logging
from typing import Callable, Optional

from calindex.core.enums import ObjectKind, ReferenceType
from calindex.core.models import (
    CALObject,
    CodeObject,
    CodeunitObject,
    Entity,
    MenuSuiteObject,
    ObjectReference,
    PageObject,
    QueryObject,
    Reference,
    ReportObject,
    TableObject,
    Variable,
    XMLportObject,
)
from calindex.core.parsers.grammars import (
    parse_calc_formula,
    parse_object_reference,
    parse_table_relation,
)
from calindex.core.parsers.hierarchy import flatten_hierarchy

logger = logging.getLogger('reference_extractor')


def _edge(
    source: CALObject,
    location: str,
    target_kind: ObjectKind,
    reference_type: ReferenceType,
    target_id: Optional[int] = None,
    target_name: Optional[str] = None,
    target_field: Optional[str] = None,
) -> Optional[Reference]:
    """Build one edge; targets with neither id nor name yield None."""
    if target_id is None and not target_name:
        return None
    return Reference(
        source_kind=source.kind,
        source_id=source.id,
        source_name=source.name,
        source_location=location,
        target_kind=target_kind,
        target_name=target_name or str(target_id),
        reference_type=reference_type,
        target_id=target_id,
        target_field=target_field,
    )


def _reference_edge(
    source: CALObject,
    location: str,
    reference: Optional[ObjectReference],
    reference_type: ReferenceType,
) -> Optional[Reference]:
    if reference is None:
        return None
    return _edge(source, location, reference.kind, reference_type, reference.id, reference.name)


def _collect(edges: list[Optional[Reference]]) -> list[Reference]:
    return [edge for edge in edges if edge is not None]


# =============================================================================
# Shared: declared variables
# =============================================================================

def _variable_edge(source: CALObject, variable: Variable, location: str) -> Optional[Reference]:
    """Edge for a variable whose payload names another object."""
    payload = variable.payload
    if not isinstance(payload, ObjectReference):
        return None
    reference_type = (
        ReferenceType.RECORD_VARIABLE if payload.kind == ObjectKind.TABLE else ReferenceType.OBJECT_VARIABLE
    )
    return _edge(source, location, payload.kind, reference_type, payload.id, payload.name)


def extract_variable_references(entity: CodeObject) -> list[Reference]:
    """Global variables, then the local variables of each procedure."""
    edges = [_variable_edge(entity, variable, f"variable:{variable.name}") for variable in entity.variables]
    for procedure in entity.procedures:
        for variable in procedure.local_variables:
            edges.append(_variable_edge(entity, variable, f"variable:{procedure.name}.{variable.name}"))
    return _collect(edges)


# =============================================================================
# Per-kind extractors
# =============================================================================

def extract_table_references(table: TableObject) -> list[Reference]:
    """TableRelation and CalcFormula edges per field, then variables."""
    edges = []
    for fld in table.fields:
        location = f"field:{fld.name}"
        relation = parse_table_relation(fld.table_relation)
        if relation:
            edges.append(_edge(
                table, location, ObjectKind.TABLE, ReferenceType.TABLE_RELATION,
                target_name=relation.target, target_field=relation.field,
            ))
        formula = parse_calc_formula(fld.calc_formula)
        if formula:
            edges.append(_edge(
                table, location, ObjectKind.TABLE, ReferenceType.CALC_FORMULA,
                target_name=formula.target, target_field=formula.field,
            ))
    return _collect(edges) + extract_variable_references(table)


def extract_page_references(page: PageObject) -> list[Reference]:
    """SourceTable, action RunObject targets, then variables."""
    edges = [_reference_edge(
        page,
        "property:SourceTable",
        parse_object_reference(page.get_property("SourceTable"), ObjectKind.TABLE),
        ReferenceType.SOURCE_TABLE,
    )]
    for action in page.actions:
        if action.run_object_kind is None:
            continue
        label = action.name or str(action.id)
        edges.append(_edge(
            page, f"action:{label}", action.run_object_kind, ReferenceType.RUN_OBJECT,
            target_id=action.run_object_id,
        ))
    return _collect(edges) + extract_variable_references(page)


def extract_codeunit_references(codeunit: CodeunitObject) -> list[Reference]:
    """Variables, then the TableNo binding."""
    edges = extract_variable_references(codeunit)
    table_no = _reference_edge(
        codeunit,
        "property:TableNo",
        parse_object_reference(codeunit.get_property("TableNo"), ObjectKind.TABLE),
        ReferenceType.TABLE_NO,
    )
    if table_no:
        edges.append(table_no)
    return edges


def extract_dataset_references(entity: ReportObject | QueryObject) -> list[Reference]:
    """One DataItemTable edge per data item, then variables."""
    edges = []
    for item in flatten_hierarchy(entity.data_items):
        edges.append(_edge(
            entity, f"dataitem:{item.name}", ObjectKind.TABLE, ReferenceType.DATA_ITEM_TABLE,
            target_id=item.table_id, target_name=item.table_name,
        ))
    return _collect(edges) + extract_variable_references(entity)


def extract_xmlport_references(xmlport: XMLportObject) -> list[Reference]:
    """Node SourceTable edges, then variables."""
    edges = []
    for node in flatten_hierarchy(xmlport.nodes):
        edges.append(_edge(
            xmlport, f"node:{node.name}", ObjectKind.TABLE, ReferenceType.PORT_NODE_TABLE,
            target_id=node.table_id, target_name=node.table_name,
        ))
    return _collect(edges) + extract_variable_references(xmlport)


def extract_menusuite_references(menu: MenuSuiteObject) -> list[Reference]:
    """RunObject target of every menu item."""
    edges = []
    for item in flatten_hierarchy(menu.menu_items):
        if item.run_object_kind is None:
            continue
        edges.append(_edge(
            menu, f"menuitem:{item.name}", item.run_object_kind, ReferenceType.RUN_OBJECT,
            target_id=item.run_object_id,
        ))
    return _collect(edges)


# Dispatch table, one extractor per object kind
EXTRACTORS: dict[ObjectKind, Callable[[Entity], list[Reference]]] = {
    ObjectKind.TABLE: extract_table_references,
    ObjectKind.PAGE: extract_page_references,
    ObjectKind.FORM: extract_page_references,
    ObjectKind.CODEUNIT: extract_codeunit_references,
    ObjectKind.REPORT: extract_dataset_references,
    ObjectKind.QUERY: extract_dataset_references,
    ObjectKind.XMLPORT: extract_xmlport_references,
    ObjectKind.MENUSUITE: extract_menusuite_references,
}

_missing = [kind.value for kind in ObjectKind if kind not in EXTRACTORS]
if _missing:
    raise RuntimeError(f"No reference extractor registered for object kinds: {', '.join(_missing)}")


def extract_references(entity: Entity) -> list[Reference]:
    """Return the outgoing reference edges of one entity.

    Never raises: an extractor failure is logged and yields no edges.
    """
    extractor = EXTRACTORS[entity.kind]
    try:
        return extractor(entity)
    except (AttributeError, TypeError, ValueError) as e:
        logger.warning(f"Reference extraction failed for {entity.kind.value} {entity.id}: {e}")
        return []
