"""Typed entities produced by the object parsers.

Every class follows the same convention: plain dataclasses, a ``to_dict()``
that omits None/empty values, and ``children`` lists on tree nodes.
"""

from dataclasses import dataclass, field
from typing import Optional, Union

from calindex.core.enums import ObjectKind, PortNodeType, ReferenceType

PropertyValue = Union[str, bool, int]


def _compact(result: dict) -> dict:
    """Drop None and empty collection values."""
    return {
        k: v for k, v in result.items()
        if v is not None and v != [] and v != {}
    }


# =============================================================================
# Header
# =============================================================================

@dataclass
class ObjectMetadata:
    """Export metadata from the OBJECT-PROPERTIES block"""
    date: Optional[str] = None
    time: Optional[str] = None
    version_list: Optional[str] = None
    modified: bool = False

    @property
    def is_empty(self) -> bool:
        return not (self.date or self.time or self.version_list or self.modified)

    def to_dict(self) -> dict:
        result = _compact({
            "date": self.date,
            "time": self.time,
            "version_list": self.version_list,
        })
        if self.modified:
            result["modified"] = True
        return result


@dataclass
class ObjectHeader:
    """The parsed OBJECT declaration line"""
    kind: ObjectKind
    id: int
    name: str
    metadata: ObjectMetadata = field(default_factory=ObjectMetadata)


# =============================================================================
# Shared value types
# =============================================================================

@dataclass
class Property:
    """A single Name=Value property"""
    name: str
    value: PropertyValue

    def to_dict(self) -> dict:
        return {"name": self.name, "value": self.value}


def find_property(properties: list[Property], name: str) -> Optional[Property]:
    """Case-insensitive lookup in a property bag."""
    wanted = name.lower()
    for prop in properties:
        if prop.name.lower() == wanted:
            return prop
    return None


@dataclass
class ObjectReference:
    """Reference to another object by id or by name"""
    kind: ObjectKind
    id: Optional[int] = None
    name: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({"kind": self.kind.value, "id": self.id, "name": self.name})


@dataclass
class ExternalType:
    """A .NET or Automation type binding"""
    assembly: str
    type_path: str

    def to_dict(self) -> dict:
        return {"assembly": self.assembly, "type_path": self.type_path}


@dataclass
class LocalizedText:
    """Language-tagged text constant; comment holds the @@@ translator note"""
    texts: dict[str, str] = field(default_factory=dict)
    comment: Optional[str] = None

    def to_dict(self) -> dict:
        return _compact({"texts": self.texts, "comment": self.comment})


VariablePayload = Union[ObjectReference, ExternalType, LocalizedText]


@dataclass
class Variable:
    """A declared variable (global, local, or return)"""
    name: str
    type: str
    id: Optional[int] = None
    type_spec: str = ""
    length: Optional[int] = None
    dimensions: list[int] = field(default_factory=list)
    temporary: bool = False
    modifiers: list[str] = field(default_factory=list)
    payload: Optional[VariablePayload] = None

    def to_dict(self) -> dict:
        result = _compact({
            "name": self.name,
            "id": self.id,
            "type": self.type,
            "type_spec": self.type_spec or None,
            "length": self.length,
            "dimensions": self.dimensions,
            "modifiers": self.modifiers,
        })
        if self.temporary:
            result["temporary"] = True
        if self.payload is not None:
            result["payload"] = self.payload.to_dict()
        return result


@dataclass
class Parameter:
    """A procedure parameter"""
    name: str
    type: str
    id: Optional[int] = None
    by_ref: bool = False

    def to_dict(self) -> dict:
        result = _compact({"name": self.name, "id": self.id, "type": self.type})
        if self.by_ref:
            result["by_ref"] = True
        return result


@dataclass
class Procedure:
    """A procedure from a CODE section; the body is kept as opaque text"""
    name: str
    id: Optional[int] = None
    parameters: list[Parameter] = field(default_factory=list)
    return_type: Optional[str] = None
    return_name: Optional[str] = None
    local_variables: list[Variable] = field(default_factory=list)
    body: str = ""
    is_local: bool = False
    attributes: list[str] = field(default_factory=list)
    is_event_subscriber: bool = False
    is_event_publisher: bool = False
    line_number: Optional[int] = None

    @property
    def body_lines(self) -> list[str]:
        return self.body.split("\n") if self.body else []

    def signature(self) -> str:
        params = "; ".join(
            f"{'VAR ' if p.by_ref else ''}{p.name} : {p.type}" for p in self.parameters
        )
        sig = f"{self.name}({params})"
        if self.return_type:
            sig += f" : {self.return_type}"
        return sig

    def to_dict(self, include_body: bool = True) -> dict:
        result = _compact({
            "name": self.name,
            "id": self.id,
            "parameters": [p.to_dict() for p in self.parameters],
            "return_type": self.return_type,
            "return_name": self.return_name,
            "local_variables": [v.to_dict() for v in self.local_variables],
            "attributes": self.attributes,
            "line_number": self.line_number,
        })
        if self.is_local:
            result["is_local"] = True
        if self.is_event_subscriber:
            result["is_event_subscriber"] = True
        if self.is_event_publisher:
            result["is_event_publisher"] = True
        if include_body and self.body:
            result["body"] = self.body
        return result


# =============================================================================
# Table members
# =============================================================================

@dataclass
class Field:
    """A table field"""
    id: int
    name: str
    data_type: str
    enabled: bool = True
    properties: list[Property] = field(default_factory=list)
    caption_ml: dict[str, str] = field(default_factory=dict)
    field_class: Optional[str] = None
    calc_formula: Optional[str] = None
    table_relation: Optional[str] = None
    on_validate: Optional[str] = None
    on_lookup: Optional[str] = None
    description: Optional[str] = None

    def to_dict(self) -> dict:
        result = _compact({
            "id": self.id,
            "name": self.name,
            "data_type": self.data_type,
            "caption_ml": self.caption_ml,
            "field_class": self.field_class,
            "calc_formula": self.calc_formula,
            "table_relation": self.table_relation,
            "description": self.description,
            "on_validate": self.on_validate,
            "on_lookup": self.on_lookup,
            "properties": [p.to_dict() for p in self.properties],
        })
        if not self.enabled:
            result["enabled"] = False
        return result


@dataclass
class Key:
    """A table key"""
    fields: list[str]
    clustered: bool = False
    unique: bool = False
    enabled: bool = True
    properties: list[Property] = field(default_factory=list)

    def to_dict(self) -> dict:
        return _compact({
            "fields": self.fields,
            "clustered": self.clustered,
            "unique": self.unique,
            "enabled": self.enabled,
            "properties": [p.to_dict() for p in self.properties],
        })


@dataclass
class FieldGroup:
    """A named subset of table fields"""
    id: int
    name: str
    fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "fields": self.fields}


# =============================================================================
# Page members
# =============================================================================

@dataclass
class Control:
    """A page control; controls nest by level"""
    id: int
    control_type: str
    level: int
    name: Optional[str] = None
    source_expr: Optional[str] = None
    caption_ml: dict[str, str] = field(default_factory=dict)
    visible: Optional[bool] = None
    editable: Optional[bool] = None
    enabled: Optional[bool] = None
    properties: list[Property] = field(default_factory=list)
    children: list['Control'] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = _compact({
            "id": self.id,
            "name": self.name,
            "control_type": self.control_type,
            "level": self.level,
            "source_expr": self.source_expr,
            "caption_ml": self.caption_ml,
            "visible": self.visible,
            "editable": self.editable,
            "enabled": self.enabled,
            "properties": [p.to_dict() for p in self.properties],
        })
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        return result


@dataclass
class Action:
    """A page action; actions stay a flat list with their level recorded"""
    id: int
    action_type: str
    level: int
    name: Optional[str] = None
    caption_ml: dict[str, str] = field(default_factory=dict)
    image: Optional[str] = None
    promoted: bool = False
    promoted_category: Optional[str] = None
    run_object_kind: Optional[ObjectKind] = None
    run_object_id: Optional[int] = None
    properties: list[Property] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = _compact({
            "id": self.id,
            "name": self.name,
            "action_type": self.action_type,
            "level": self.level,
            "caption_ml": self.caption_ml,
            "image": self.image,
            "promoted_category": self.promoted_category,
            "run_object_kind": self.run_object_kind.value if self.run_object_kind else None,
            "run_object_id": self.run_object_id,
            "properties": [p.to_dict() for p in self.properties],
        })
        if self.promoted:
            result["promoted"] = True
        return result


# =============================================================================
# Report / Query / XMLport / MenuSuite members
# =============================================================================

@dataclass
class Column:
    """A dataset column or query filter"""
    id: int
    name: str
    source_expr: str
    is_filter: bool = False
    method: Optional[str] = None
    properties: list[Property] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = _compact({
            "id": self.id,
            "name": self.name,
            "source_expr": self.source_expr,
            "method": self.method,
            "properties": [p.to_dict() for p in self.properties],
        })
        if self.is_filter:
            result["is_filter"] = True
        return result


@dataclass
class DataItem:
    """A report or query data item bound to a table"""
    id: int
    name: str
    level: int
    table_name: Optional[str] = None
    table_id: Optional[int] = None
    columns: list[Column] = field(default_factory=list)
    properties: list[Property] = field(default_factory=list)
    children: list['DataItem'] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = _compact({
            "id": self.id,
            "name": self.name,
            "table_name": self.table_name,
            "table_id": self.table_id,
            "level": self.level,
            "columns": [c.to_dict() for c in self.columns],
            "properties": [p.to_dict() for p in self.properties],
        })
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        return result


@dataclass
class PortNode:
    """An XMLport element/attribute node"""
    id: int
    name: str
    node_type: PortNodeType
    level: int
    table_id: Optional[int] = None
    table_name: Optional[str] = None
    source_field: Optional[str] = None
    properties: list[Property] = field(default_factory=list)
    children: list['PortNode'] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = _compact({
            "id": self.id,
            "name": self.name,
            "node_type": self.node_type.value,
            "level": self.level,
            "table_id": self.table_id,
            "table_name": self.table_name,
            "source_field": self.source_field,
            "properties": [p.to_dict() for p in self.properties],
        })
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        return result


@dataclass
class MenuItem:
    """A MenuSuite item; folders carry children"""
    id: int
    name: str
    level: int
    is_folder: bool = False
    is_separator: bool = False
    run_object_kind: Optional[ObjectKind] = None
    run_object_id: Optional[int] = None
    properties: list[Property] = field(default_factory=list)
    children: list['MenuItem'] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = _compact({
            "id": self.id,
            "name": self.name,
            "level": self.level,
            "run_object_kind": self.run_object_kind.value if self.run_object_kind else None,
            "run_object_id": self.run_object_id,
            "properties": [p.to_dict() for p in self.properties],
        })
        if self.is_folder:
            result["is_folder"] = True
        if self.is_separator:
            result["is_separator"] = True
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        return result


# =============================================================================
# Entities
# =============================================================================

@dataclass
class CALObject:
    """Fields shared by every parsed object"""
    kind: ObjectKind
    id: int
    name: str
    metadata: ObjectMetadata = field(default_factory=ObjectMetadata)
    properties: list[Property] = field(default_factory=list)
    documentation: Optional[str] = None

    @property
    def key(self) -> tuple[ObjectKind, int]:
        return (self.kind, self.id)

    @property
    def header(self) -> ObjectHeader:
        return ObjectHeader(self.kind, self.id, self.name, self.metadata)

    def get_property(self, name: str) -> Optional[PropertyValue]:
        prop = find_property(self.properties, name)
        return prop.value if prop else None

    def to_dict(self) -> dict:
        return _compact({
            "kind": self.kind.value,
            "id": self.id,
            "name": self.name,
            "metadata": self.metadata.to_dict(),
            "properties": [p.to_dict() for p in self.properties],
            "documentation": self.documentation,
        })


@dataclass
class CodeObject(CALObject):
    """An object that may carry a CODE section"""
    variables: list[Variable] = field(default_factory=list)
    procedures: list[Procedure] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.variables:
            result["variables"] = [v.to_dict() for v in self.variables]
        if self.procedures:
            result["procedures"] = [p.to_dict() for p in self.procedures]
        return result


@dataclass
class TableObject(CodeObject):
    fields: list[Field] = field(default_factory=list)
    keys: list[Key] = field(default_factory=list)
    field_groups: list[FieldGroup] = field(default_factory=list)
    permissions: Optional[str] = None
    caption_ml: dict[str, str] = field(default_factory=dict)
    lookup_page_id: Optional[int] = None
    drilldown_page_id: Optional[int] = None
    triggers: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        result = super().to_dict()
        result.update(_compact({
            "fields": [f.to_dict() for f in self.fields],
            "keys": [k.to_dict() for k in self.keys],
            "field_groups": [g.to_dict() for g in self.field_groups],
            "permissions": self.permissions,
            "caption_ml": self.caption_ml,
            "lookup_page_id": self.lookup_page_id,
            "drilldown_page_id": self.drilldown_page_id,
            "triggers": self.triggers,
        }))
        return result


@dataclass
class PageObject(CodeObject):
    source_table_id: Optional[int] = None
    source_table_view: Optional[str] = None
    page_type: Optional[str] = None
    caption_ml: dict[str, str] = field(default_factory=dict)
    controls: list[Control] = field(default_factory=list)
    actions: list[Action] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = super().to_dict()
        result.update(_compact({
            "source_table_id": self.source_table_id,
            "source_table_view": self.source_table_view,
            "page_type": self.page_type,
            "caption_ml": self.caption_ml,
            "controls": [c.to_dict() for c in self.controls],
            "actions": [a.to_dict() for a in self.actions],
        }))
        return result


@dataclass
class CodeunitObject(CodeObject):
    subtype: Optional[str] = None
    table_no: Optional[int] = None
    single_instance: bool = False

    def to_dict(self) -> dict:
        result = super().to_dict()
        result.update(_compact({"subtype": self.subtype, "table_no": self.table_no}))
        if self.single_instance:
            result["single_instance"] = True
        return result


@dataclass
class ReportObject(CodeObject):
    data_items: list[DataItem] = field(default_factory=list)
    columns: list[Column] = field(default_factory=list)
    processing_only: bool = False

    def to_dict(self) -> dict:
        result = super().to_dict()
        result.update(_compact({
            "data_items": [d.to_dict() for d in self.data_items],
            "columns": [c.to_dict() for c in self.columns],
        }))
        if self.processing_only:
            result["processing_only"] = True
        return result


@dataclass
class QueryObject(CodeObject):
    data_items: list[DataItem] = field(default_factory=list)
    columns: list[Column] = field(default_factory=list)
    query_type: Optional[str] = None
    order_by: Optional[str] = None

    def to_dict(self) -> dict:
        result = super().to_dict()
        result.update(_compact({
            "data_items": [d.to_dict() for d in self.data_items],
            "columns": [c.to_dict() for c in self.columns],
            "query_type": self.query_type,
            "order_by": self.order_by,
        }))
        return result


@dataclass
class XMLportObject(CodeObject):
    nodes: list[PortNode] = field(default_factory=list)
    direction: str = "Both"
    format: str = "Xml"

    def to_dict(self) -> dict:
        result = super().to_dict()
        result["direction"] = self.direction
        result["format"] = self.format
        if self.nodes:
            result["nodes"] = [n.to_dict() for n in self.nodes]
        return result


@dataclass
class MenuSuiteObject(CALObject):
    menu_items: list[MenuItem] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = super().to_dict()
        if self.menu_items:
            result["menu_items"] = [m.to_dict() for m in self.menu_items]
        return result


Entity = Union[
    TableObject,
    PageObject,
    CodeunitObject,
    ReportObject,
    QueryObject,
    XMLportObject,
    MenuSuiteObject,
]


# =============================================================================
# Reference edges and summaries
# =============================================================================

@dataclass(frozen=True)
class Reference:
    """A directional reference from one object location to another object"""
    source_kind: ObjectKind
    source_id: int
    source_name: str
    source_location: str
    target_kind: ObjectKind
    target_name: str
    reference_type: ReferenceType
    target_id: Optional[int] = None
    target_field: Optional[str] = None

    @property
    def source_key(self) -> tuple[ObjectKind, int]:
        return (self.source_kind, self.source_id)

    def to_dict(self) -> dict:
        return _compact({
            "source_kind": self.source_kind.value,
            "source_id": self.source_id,
            "source_name": self.source_name,
            "source_location": self.source_location,
            "target_kind": self.target_kind.value,
            "target_id": self.target_id,
            "target_name": self.target_name,
            "target_field": self.target_field,
            "reference_type": self.reference_type.value,
        })


@dataclass
class ObjectSummary:
    """Core object fields plus truncated field/procedure lists"""
    kind: ObjectKind
    id: int
    name: str
    metadata: ObjectMetadata
    fields: list[Field] = field(default_factory=list)
    procedures: list[Procedure] = field(default_factory=list)
    total_fields: int = 0
    total_procedures: int = 0

    def to_dict(self) -> dict:
        return _compact({
            "kind": self.kind.value,
            "id": self.id,
            "name": self.name,
            "metadata": self.metadata.to_dict(),
            "fields": [{"id": f.id, "name": f.name, "data_type": f.data_type} for f in self.fields],
            "procedures": [p.signature() for p in self.procedures],
            "total_fields": self.total_fields,
            "total_procedures": self.total_procedures,
        })
