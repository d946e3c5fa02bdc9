"""Property bag scanning.

Property runs look like::

    CaptionML=[ENU=Payment Terms;
               DEU=Zahlungsbedingungen];
    NotBlank=Yes;
    OnValidate=BEGIN
                 IF Code = '' THEN
                   ERROR('Code; required');
               END;

Separators are semicolons at bracket, parenthesis and brace depth 0
outside quoted names. Trigger values (starting with VAR or BEGIN) run to the END that
balances their BEGIN, so semicolons inside code never split a property.
"""

import re
import textwrap

from calindex.core.models import Property, PropertyValue

_NAME_RE = re.compile(r"\s*([A-Za-z][A-Za-z0-9_ ]*?)\s*=")
_INT_RE = re.compile(r"-?(?:0|[1-9]\d*)")
_CODE_START_RE = re.compile(r"\s*(?:VAR|BEGIN)\b")
_WORD_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

# Keywords that open a block closed by END
_BLOCK_OPENERS = ("BEGIN", "CASE")


def _skip_quoted(text: str, i: int, quote: str) -> int:
    """Return the index just past the quote closing the one at ``i``."""
    end = text.find(quote, i + 1)
    return len(text) if end == -1 else end + 1


def find_code_block_end(text: str, start: int = 0) -> int:
    """Return the index just past the END balancing the first BEGIN after ``start``.

    Quoted strings, quoted identifiers, ``{ }`` comments and ``//`` line
    comments are skipped. Returns -1 when the block is never closed.
    """
    depth = 0
    opened = False
    i = start
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "'" or ch == '"':
            i = _skip_quoted(text, i, ch)
            continue
        if ch == "{":
            end = text.find("}", i + 1)
            i = n if end == -1 else end + 1
            continue
        if ch == "/" and text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end + 1
            continue
        if ch.isalpha() or ch == "_":
            match = _WORD_RE.match(text, i)
            word = match.group(0)
            if word in _BLOCK_OPENERS:
                depth += 1
                opened = True
            elif word == "END" and opened:
                depth -= 1
                if depth == 0:
                    return match.end()
            i = match.end()
            continue
        i += 1
    return -1


def _plain_value_end(text: str, start: int) -> int:
    """Index of the separator ending a non-code value, or len(text)."""
    depth = 0
    in_quote = False
    for i in range(start, len(text)):
        ch = text[i]
        if ch == "\n":
            # Quoted names never span lines
            in_quote = False
        elif ch == '"':
            in_quote = not in_quote
        elif in_quote:
            continue
        elif ch in "[({":
            depth += 1
        elif ch in "])}":
            depth = max(depth - 1, 0)
        elif ch == ";" and depth == 0:
            return i
    return len(text)


def open_bracket_depth(raw: str) -> int:
    """Number of ``[`` or ``(`` left open at the end of a plain value."""
    depth = 0
    in_quote = False
    for ch in raw:
        if ch == "\n":
            in_quote = False
        elif ch == '"':
            in_quote = not in_quote
        elif in_quote:
            continue
        elif ch in "[(":
            depth += 1
        elif ch in "])":
            depth = max(depth - 1, 0)
    return depth


def is_code_value(raw: str) -> bool:
    return bool(_CODE_START_RE.match(raw))


def split_properties(text: str) -> list[tuple[str, str]]:
    """Split a property run into (name, raw value) pairs in source order."""
    pairs = []
    pos = 0
    n = len(text)
    while pos < n:
        if not text[pos:].strip():
            break
        match = _NAME_RE.match(text, pos)
        if not match:
            # Not a property; skip to the next separator
            end = _plain_value_end(text, pos)
            pos = end + 1
            continue

        name = match.group(1).strip()
        start = match.end()
        if _CODE_START_RE.match(text, start):
            block_end = find_code_block_end(text, start)
            if block_end == -1:
                block_end = n
            sep = text.find(";", block_end)
            end = sep if sep != -1 and not text[block_end:sep].strip() else block_end
            value = text[start:block_end]
        else:
            end = _plain_value_end(text, start)
            value = text[start:end]

        pairs.append((name, value))
        pos = end + 1
    return pairs


def normalize_code(raw: str) -> str:
    """Strip a trigger value and dedent its continuation lines."""
    lines = raw.strip().split("\n")
    if len(lines) == 1:
        return lines[0]
    rest = textwrap.dedent("\n".join(lines[1:]))
    return "\n".join([lines[0].strip(), rest]).rstrip()


def collapse_whitespace(raw: str) -> str:
    return " ".join(raw.split())


def coerce_value(raw: str) -> PropertyValue:
    """Convert Yes/No to bool and plain integers to int; everything else stays text."""
    if raw == "Yes":
        return True
    if raw == "No":
        return False
    if _INT_RE.fullmatch(raw):
        return int(raw)
    return raw


def parse_property_bag(text: str) -> list[Property]:
    """Parse a property run into Property values."""
    properties = []
    for name, raw in split_properties(text):
        if is_code_value(raw):
            properties.append(Property(name, normalize_code(raw)))
        else:
            properties.append(Property(name, coerce_value(collapse_whitespace(raw))))
    return properties


def property_text(properties: list[Property], name: str) -> str | None:
    """Return a property value as text, or None when absent."""
    wanted = name.lower()
    for prop in properties:
        if prop.name.lower() == wanted:
            value = prop.value
            if isinstance(value, bool):
                return "Yes" if value else "No"
            return str(value)
    return None


def property_flag(properties: list[Property], name: str) -> bool | None:
    """Return a Yes/No property as bool, or None when absent or not boolean."""
    wanted = name.lower()
    for prop in properties:
        if prop.name.lower() == wanted and isinstance(prop.value, bool):
            return prop.value
    return None
