"""Object kind and reference enums."""

from enum import Enum


class ObjectKind(str, Enum):
    """Object kinds that can appear in an export."""

    TABLE = "Table"
    PAGE = "Page"
    FORM = "Form"
    CODEUNIT = "Codeunit"
    REPORT = "Report"
    XMLPORT = "XMLport"
    QUERY = "Query"
    MENUSUITE = "MenuSuite"

    @classmethod
    def from_name(cls, name: "str | ObjectKind") -> "ObjectKind":
        """Resolve a kind token case-insensitively.

        Raises:
            ValueError: If the token names no known kind
        """
        if isinstance(name, cls):
            return name
        token = str(name).strip().lower()
        for kind in cls:
            if kind.value.lower() == token:
                return kind
        raise ValueError(f"Unknown object kind: {name}")


# Type keywords used in variable declarations and RunObject values.
# "Record" names a table; the rest name the kind directly.
OBJECT_TYPE_KEYWORDS: dict[str, ObjectKind] = {
    "Record": ObjectKind.TABLE,
    "Table": ObjectKind.TABLE,
    "TableData": ObjectKind.TABLE,
    "Page": ObjectKind.PAGE,
    "Form": ObjectKind.FORM,
    "Codeunit": ObjectKind.CODEUNIT,
    "Report": ObjectKind.REPORT,
    "XMLport": ObjectKind.XMLPORT,
    "Query": ObjectKind.QUERY,
    "MenuSuite": ObjectKind.MENUSUITE,
}


class ReferenceType(str, Enum):
    """Origin of a cross-object reference edge."""

    TABLE_RELATION = "TableRelation"
    CALC_FORMULA = "CalcFormula"
    RECORD_VARIABLE = "RecordVariable"
    OBJECT_VARIABLE = "ObjectVariable"
    SOURCE_TABLE = "SourceTable"
    DATA_ITEM_TABLE = "DataItemTable"
    PORT_NODE_TABLE = "PortNodeTable"
    RUN_OBJECT = "RunObject"
    TABLE_NO = "TableNo"


class PortNodeType(str, Enum):
    """XMLport node types."""

    ELEMENT = "Element"
    FIELD = "Field"
    TEXT = "Text"
    ATTRIBUTE = "Attribute"


class MemberCategory(str, Enum):
    """Member collections that can be searched inside an object."""

    FIELDS = "fields"
    KEYS = "keys"
    FIELD_GROUPS = "fieldgroups"
    PROCEDURES = "procedures"
    VARIABLES = "variables"
    CONTROLS = "controls"
    ACTIONS = "actions"
    DATA_ITEMS = "dataitems"
    COLUMNS = "columns"
    NODES = "nodes"
    MENU_ITEMS = "menuitems"
