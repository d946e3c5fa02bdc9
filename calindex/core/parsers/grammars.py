"""Property micro-grammars.

Each grammar is a small standalone function. None of them raise on bad
input: an expression that cannot be read yields None (or an entity with
no payload) and parsing of the surrounding object carries on.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from calindex.core.enums import OBJECT_TYPE_KEYWORDS, ObjectKind
from calindex.core.models import (
    ExternalType,
    LocalizedText,
    ObjectReference,
    Parameter,
    PropertyValue,
    Variable,
    VariablePayload,
)

logger = logging.getLogger('cal_grammars')


# =============================================================================
# Shared scanning helpers
# =============================================================================

_BARE_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_BARE_FIELD_RE = re.compile(r"[A-Za-z0-9_][^\s()\"]*")


def _read_name(text: str, pos: int) -> tuple[Optional[str], int]:
    """Read a quoted or bare name at ``pos``; returns (name, end) or (None, pos)."""
    if text.startswith('"', pos):
        end = text.find('"', pos + 1)
        if end == -1:
            return None, pos
        name = text[pos + 1:end].strip()
        return (name or None), end + 1
    match = _BARE_NAME_RE.match(text, pos)
    if not match:
        return None, pos
    return match.group(0), match.end()


def _read_field(text: str, pos: int) -> tuple[Optional[str], int]:
    """Read a ``.field`` qualification body (after the dot)."""
    if text.startswith('"', pos):
        return _read_name(text, pos)
    match = _BARE_FIELD_RE.match(text, pos)
    if not match:
        return None, pos
    return match.group(0), match.end()


def matching_paren(text: str, open_index: int) -> int:
    """Index of the parenthesis closing the one at ``open_index``, or -1."""
    depth = 0
    in_quote = False
    for i in range(open_index, len(text)):
        ch = text[i]
        if ch == '"':
            in_quote = not in_quote
        elif in_quote:
            continue
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    return -1


def split_top_level(text: str, separator: str = ";", quotes: str = "'\"") -> list[str]:
    """Split on ``separator`` outside quotes, brackets and parentheses."""
    parts = []
    depth = 0
    quote: Optional[str] = None
    start = 0
    for i, ch in enumerate(text):
        if quote:
            if ch == quote:
                quote = None
        elif ch in quotes:
            quote = ch
        elif ch in "[(":
            depth += 1
        elif ch in "])":
            depth = max(depth - 1, 0)
        elif ch == separator and depth == 0:
            parts.append(text[start:i])
            start = i + 1
    parts.append(text[start:])
    return parts


def _collapse(text: str) -> str:
    return " ".join(text.split())


# =============================================================================
# Relation constraint
# =============================================================================

@dataclass
class TableRelation:
    """Parsed TableRelation expression"""
    target: str
    field: Optional[str] = None
    qualifier: Optional[str] = None     # opaque trailing text, e.g. WHERE (...)
    condition: Optional[str] = None     # leading IF (...) clause


_IF_RE = re.compile(r"IF\s*\(")


def parse_table_relation(value: Optional[PropertyValue]) -> Optional[TableRelation]:
    """Parse a TableRelation value.

    ``"Payment Terms" WHERE (...)`` -> target "Payment Terms";
    ``Customer."No."`` -> target "Customer", field "No.".
    Empty or unreadable values yield None.
    """
    if not isinstance(value, str):
        return None
    text = _collapse(value)
    if not text:
        return None

    condition = None
    if_match = _IF_RE.match(text)
    if if_match:
        close_index = matching_paren(text, if_match.end() - 1)
        if close_index == -1:
            return None
        condition = text[:close_index + 1]
        text = text[close_index + 1:].lstrip()

    target, pos = _read_name(text, 0)
    if not target:
        logger.debug(f"Unreadable table relation: {value!r}")
        return None

    target_field = None
    if text.startswith(".", pos):
        target_field, field_end = _read_field(text, pos + 1)
        if target_field:
            pos = field_end

    qualifier = text[pos:].strip() or None
    return TableRelation(target, target_field, qualifier, condition)


# =============================================================================
# Aggregate formula
# =============================================================================

FORMULA_METHODS = {
    "sum": "Sum",
    "count": "Count",
    "exist": "Exist",
    "lookup": "Lookup",
    "average": "Average",
    "min": "Min",
    "max": "Max",
}

_FORMULA_RE = re.compile(r"(-)?\s*(Sum|Count|Exist|Lookup|Average|Min|Max)\s*\(", re.IGNORECASE)


@dataclass
class CalcFormula:
    """Parsed CalcFormula expression"""
    method: str
    target: str
    field: Optional[str] = None
    qualifier: Optional[str] = None
    negated: bool = False


def parse_calc_formula(value: Optional[PropertyValue]) -> Optional[CalcFormula]:
    """Parse a CalcFormula value.

    ``Sum("Cust. Ledger Entry".Amount WHERE (...))`` -> method Sum,
    target "Cust. Ledger Entry", field "Amount". Unreadable values yield None.
    """
    if not isinstance(value, str):
        return None
    text = _collapse(value)
    match = _FORMULA_RE.match(text)
    if not match:
        if text:
            logger.debug(f"Unreadable calc formula: {value!r}")
        return None

    open_index = match.end() - 1
    close_index = matching_paren(text, open_index)
    inner = text[open_index + 1:close_index if close_index != -1 else len(text)].strip()

    target, pos = _read_name(inner, 0)
    if not target:
        return None

    target_field = None
    if inner.startswith(".", pos):
        target_field, field_end = _read_field(inner, pos + 1)
        if target_field:
            pos = field_end

    return CalcFormula(
        method=FORMULA_METHODS[match.group(2).lower()],
        target=target,
        field=target_field,
        qualifier=inner[pos:].strip() or None,
        negated=bool(match.group(1)),
    )


# =============================================================================
# Object references
# =============================================================================

_KIND_ALTERNATION = "|".join(sorted(OBJECT_TYPE_KEYWORDS, key=len, reverse=True))
_OBJECT_REF_RE = re.compile(
    rf'^({_KIND_ALTERNATION})(?:\s*(\d+)|\s*"([^"]+)"|\s+([A-Za-z_][\w.\-/]*))\s*$'
)
_QUOTED_RE = re.compile(r'^"([^"]+)"$')


def parse_object_reference(
    value: Optional[PropertyValue],
    default_kind: Optional[ObjectKind] = None,
) -> Optional[ObjectReference]:
    """Parse ``Page 4``, ``Table18``, ``Record "G/L Account"`` style references.

    With ``default_kind`` a bare number or a quoted or bare name is also accepted.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return ObjectReference(default_kind, id=value) if default_kind else None

    text = _collapse(value)
    match = _OBJECT_REF_RE.match(text)
    if match:
        kind = OBJECT_TYPE_KEYWORDS[match.group(1)]
        if match.group(2):
            return ObjectReference(kind, id=int(match.group(2)))
        return ObjectReference(kind, name=match.group(3) or match.group(4))

    if default_kind is not None:
        if text.isdigit():
            return ObjectReference(default_kind, id=int(text))
        quoted = _QUOTED_RE.match(text)
        if quoted:
            return ObjectReference(default_kind, name=quoted.group(1))
        if _BARE_NAME_RE.fullmatch(text):
            return ObjectReference(default_kind, name=text)
    return None


# =============================================================================
# Localized text
# =============================================================================

COMMENT_TAG = "@@@"
_LANG_ENTRY_RE = re.compile(r"^\s*([A-Z]{3}|@@@)\s*=(.*)$", re.DOTALL)


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        text = text[1:-1]
    return text.replace("''", "'")


def parse_localized_text(inner: str) -> LocalizedText:
    """Parse ``ENU=Text;DEU=Text;@@@=Comment`` into a LocalizedText."""
    result = LocalizedText()
    for part in split_top_level(inner, ";", quotes='"'):
        match = _LANG_ENTRY_RE.match(part)
        if not match:
            if part.strip():
                logger.debug(f"Skipping localized text entry: {part!r}")
            continue
        tag, text = match.group(1), _unquote(match.group(2))
        if tag == COMMENT_TAG:
            result.comment = text
        else:
            result.texts[tag] = text
    return result


def parse_caption_ml(value: Optional[PropertyValue]) -> dict[str, str]:
    """Parse a CaptionML value (``[ENU=..;DEU=..]`` or ``ENU=..``) into {lang: text}."""
    if not isinstance(value, str):
        return {}
    text = value.strip()
    if text.startswith("[") and text.endswith("]"):
        text = text[1:-1]
    return parse_localized_text(text).texts


# =============================================================================
# Variables and parameters
# =============================================================================

_TRAILING_MODIFIER_RE = re.compile(
    r"\s+(WITHEVENTS|INDATASET|RUNONCLIENT|SECURITYFILTERING\s*\(\w+\))\s*$",
    re.IGNORECASE,
)
_ARRAY_RE = re.compile(r"^ARRAY\s*\[([\d,\s]+)\]\s+OF\s+(.+)$", re.DOTALL)
_DOTNET_RE = re.compile(r"^DotNet\s+\"'([^']+)'\.(.+)\"$", re.DOTALL)
_AUTOMATION_RE = re.compile(r"^Automation\s+\"(?:.*?:)?'([^']+)'\.(.+)\"$", re.DOTALL)
_TEXTCONST_RE = re.compile(r"^TextConst\s+'(.*)'$", re.DOTALL)
_SIMPLE_TYPE_RE = re.compile(r"^(\w+)(?:\s*\[(\d+)\])?")
_DECLARATION_RE = re.compile(r'^\s*("[^"]+"|\w+)@(\d+)\s*:\s*(.+?)\s*$', re.DOTALL)
_PARAMETER_RE = re.compile(r'^\s*(VAR\s+)?("[^"]+"|\w+)(?:@(\d+))?\s*:\s*(.+?)\s*$', re.DOTALL)


@dataclass
class VariableType:
    """Result of reading a declared type"""
    type: str
    type_spec: str
    length: Optional[int] = None
    dimensions: list[int] = field(default_factory=list)
    temporary: bool = False
    by_ref: bool = False
    modifiers: list[str] = field(default_factory=list)
    payload: Optional[VariablePayload] = None


def parse_variable_type(type_spec: str) -> VariableType:
    """Read a declared type such as ``TEMPORARY Record 18`` or ``TextConst 'ENU=..'``.

    Never raises; an unrecognised payload is simply left empty.
    """
    spec = type_spec.strip()
    result = VariableType(type="", type_spec=spec)

    if spec.startswith("VAR "):
        result.by_ref = True
        spec = spec[4:].lstrip()
    if spec.startswith("TEMPORARY "):
        result.temporary = True
        spec = spec[10:].lstrip()

    array_match = _ARRAY_RE.match(spec)
    if array_match:
        result.dimensions = [int(d) for d in array_match.group(1).split(",") if d.strip()]
        spec = array_match.group(2).strip()

    while True:
        modifier = _TRAILING_MODIFIER_RE.search(spec)
        if not modifier:
            break
        result.modifiers.insert(0, modifier.group(1).upper())
        spec = spec[:modifier.start()]

    dotnet = _DOTNET_RE.match(spec)
    if dotnet:
        result.type = "DotNet"
        result.payload = ExternalType(dotnet.group(1), dotnet.group(2))
        return result

    automation = _AUTOMATION_RE.match(spec)
    if automation:
        result.type = "Automation"
        result.payload = ExternalType(automation.group(1), automation.group(2))
        return result

    text_const = _TEXTCONST_RE.match(spec)
    if text_const:
        result.type = "TextConst"
        result.payload = parse_localized_text(text_const.group(1))
        return result

    reference = parse_object_reference(spec)
    if reference:
        result.type = re.match(r"[A-Za-z]+", spec).group(0)
        result.payload = reference
        return result

    simple = _SIMPLE_TYPE_RE.match(spec)
    if simple:
        result.type = simple.group(1)
        if simple.group(2):
            result.length = int(simple.group(2))
    else:
        result.type = spec.split(None, 1)[0] if spec else ""
        logger.debug(f"Unrecognised variable type: {type_spec!r}")
    return result


def _unquote_identifier(name: str) -> str:
    return name[1:-1] if name.startswith('"') and name.endswith('"') else name


def build_variable(name: str, type_spec: str, var_id: Optional[int] = None) -> Variable:
    parsed = parse_variable_type(type_spec)
    return Variable(
        name=_unquote_identifier(name),
        type=parsed.type,
        id=var_id,
        type_spec=_collapse(parsed.type_spec),
        length=parsed.length,
        dimensions=parsed.dimensions,
        temporary=parsed.temporary,
        modifiers=parsed.modifiers,
        payload=parsed.payload,
    )


def parse_variable_block(text: str) -> list[Variable]:
    """Parse ``Name@1000 : Type;`` declarations from a VAR block body."""
    variables = []
    for declaration in split_top_level(text, ";"):
        if not declaration.strip():
            continue
        match = _DECLARATION_RE.match(declaration)
        if not match:
            logger.debug(f"Skipping unreadable declaration: {declaration.strip()[:80]!r}")
            continue
        variables.append(build_variable(match.group(1), match.group(3), int(match.group(2))))
    return variables


def parse_parameters(text: str) -> list[Parameter]:
    """Parse a procedure parameter list (the text between the parentheses)."""
    parameters = []
    for part in split_top_level(text, ";"):
        if not part.strip():
            continue
        match = _PARAMETER_RE.match(part)
        if not match:
            logger.debug(f"Skipping unreadable parameter: {part.strip()!r}")
            continue
        parameters.append(Parameter(
            name=_unquote_identifier(match.group(2)),
            type=_collapse(match.group(4)),
            id=int(match.group(3)) if match.group(3) else None,
            by_ref=bool(match.group(1)),
        ))
    return parameters
