"""Section extraction for object text.

Sections are named top-level blocks such as::

    FIELDS
    {
      { 1   ;   ;Code                ;Code10        }
    }

Extraction uses brace depth counting rather than regexes so nested item
blocks and trigger comments do not end a section early.
"""

import re
from dataclasses import dataclass
from typing import Optional

from calindex.core.exceptions import MissingSectionError

_BOM = "\ufeff"


@dataclass
class SectionItem:
    """A top-level ``{ ... }`` record inside a section body"""
    text: str           # content between the braces
    column: int         # column of the opening brace
    line_number: int    # 1-based, relative to the section body


def strip_bom(text: str) -> str:
    """Remove a leading byte-order marker."""
    return text[1:] if text.startswith(_BOM) else text


def _keyword_pattern(keyword: str) -> re.Pattern:
    # Start of line, keyword, then whitespace or end of line. The start-of-line
    # anchor keeps PROPERTIES from matching inside OBJECT-PROPERTIES.
    return re.compile(rf"^[ \t]*{re.escape(keyword)}(?=[ \t]*(?:\r?\n|\{{|$))", re.MULTILINE)


def _skip_literal(text: str, i: int) -> int:
    """Index just past the literal opened by the quote at ``i``.

    C/AL strings and quoted identifiers never span lines, so a quote with no
    partner before the end of its line is a plain apostrophe and only that
    character is skipped. A doubled quote inside a literal reads as two
    adjacent literals, which skips the same span.
    """
    quote = text[i]
    line_end = text.find("\n", i + 1)
    if line_end == -1:
        line_end = len(text)
    end = text.find(quote, i + 1, line_end)
    return i + 1 if end == -1 else end + 1


def find_matching_brace(text: str, open_index: int) -> int:
    """Return the index of the brace closing the one at ``open_index``, or -1.

    Braces inside ``'...'`` strings and ``"..."`` identifiers do not count.
    """
    depth = 0
    i = open_index
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "'" or ch == '"':
            i = _skip_literal(text, i)
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def brace_delta(line: str) -> int:
    """Net count of braces opened on a line, ignoring braces inside literals."""
    delta = 0
    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == "'" or ch == '"':
            i = _skip_literal(line, i)
            continue
        if ch == "{":
            delta += 1
        elif ch == "}":
            delta -= 1
        i += 1
    return delta


def find_section(text: str, keyword: str) -> Optional[str]:
    """Return the section text from keyword to closing brace, or None if absent."""
    match = _keyword_pattern(keyword).search(text)
    if not match:
        return None
    open_index = text.find("{", match.end())
    if open_index == -1:
        return None
    close_index = find_matching_brace(text, open_index)
    if close_index == -1:
        return None
    return text[match.start():close_index + 1].strip()


def extract_section(
    text: str,
    keyword: str,
    object_name: str | None = None,
    kind: str | None = None,
    object_id: int | None = None,
) -> str:
    """Return the section text from keyword to its matching closing brace.

    Raises:
        MissingSectionError: If the keyword is absent or the block is unterminated
    """
    match = _keyword_pattern(keyword).search(text)
    if not match:
        raise MissingSectionError(
            keyword, object_name=object_name, kind=kind, object_id=object_id
        )
    open_index = text.find("{", match.end())
    if open_index == -1:
        raise MissingSectionError(
            keyword, object_name=object_name, reason="no opening brace", kind=kind, object_id=object_id
        )
    close_index = find_matching_brace(text, open_index)
    if close_index == -1:
        raise MissingSectionError(
            keyword, object_name=object_name, reason="no matching closing brace", kind=kind, object_id=object_id
        )
    return text[match.start():close_index + 1].strip()


def section_body(section: str) -> str:
    """Return the text between a section's outer braces."""
    open_index = section.find("{")
    close_index = section.rfind("}")
    if open_index == -1 or close_index <= open_index:
        return ""
    return section[open_index + 1:close_index]


def split_items(body: str) -> list[SectionItem]:
    """Split a section body into its top-level ``{ ... }`` records."""
    items = []
    i = 0
    n = len(body)
    while i < n:
        if body[i] != "{":
            i += 1
            continue
        close_index = find_matching_brace(body, i)
        if close_index == -1:
            break
        line_start = body.rfind("\n", 0, i) + 1
        items.append(SectionItem(
            text=body[i + 1:close_index],
            column=i - line_start,
            line_number=body.count("\n", 0, i) + 1,
        ))
        i = close_index + 1
    return items


def split_columns(text: str, count: int) -> list[str]:
    """Split the first ``count`` semicolon-separated columns off an item.

    Returns ``count`` stripped columns followed by the untouched remainder
    (empty when the item has no property tail).
    """
    parts = text.split(";", count)
    while len(parts) < count + 1:
        parts.append("")
    columns = [p.strip() for p in parts[:count]]
    return columns + [parts[count]]
