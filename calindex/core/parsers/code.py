"""CODE section parsing shared by every kind that can carry code.

A CODE section holds an optional global VAR block, procedures and a
closing documentation trigger::

    CODE
    {
      VAR
        Text000@1000 : TextConst 'ENU=Posting...';

      [External]
      LOCAL PROCEDURE CheckLine@1(VAR SalesLine@1000 : Record 37) : Boolean;
      VAR
        Item@1001 : Record 27;
      BEGIN
        ...
      END;

      BEGIN
      {
        documentation
      }
      END.
    }

Procedure bodies are kept as opaque, dedented text.
"""

import logging
import re
import textwrap
from dataclasses import dataclass, field
from typing import Optional

from calindex.core.models import Procedure, Variable
from calindex.core.parsers.grammars import parse_parameters, parse_variable_block
from calindex.core.parsers.properties import find_code_block_end
from calindex.core.parsers.sections import find_section

logger = logging.getLogger('code_parser')

_PROCEDURE_RE = re.compile(
    r'^[ \t]*(LOCAL[ \t]+)?PROCEDURE[ \t]+("[^"]+"|\w+)@(\d+)\((.*?)\)'
    r'(?:[ \t]*("[^"]+"|\w+)?[ \t]*:[ \t]*([^;\n]+?))?[ \t]*;',
    re.MULTILINE | re.DOTALL,
)
_FIRST_MEMBER_RE = re.compile(
    r'^[ \t]*(?:\[|LOCAL[ \t]+PROCEDURE\b|PROCEDURE\b|EVENT\b|BEGIN\b)',
    re.MULTILINE,
)
_VAR_RE = re.compile(r'^[ \t]*VAR\b', re.MULTILINE)
_BEGIN_RE = re.compile(r'^[ \t]*BEGIN\b', re.MULTILINE)
_DOC_BEGIN_RE = re.compile(r"^[ \t]*BEGIN\s*\{", re.MULTILINE)
_DOC_END_RE = re.compile(r"(.*)\}\s*END\.\s*$", re.DOTALL)


@dataclass
class CodeBlock:
    """Everything read from one CODE section"""
    variables: list[Variable] = field(default_factory=list)
    procedures: list[Procedure] = field(default_factory=list)
    documentation: Optional[str] = None


def _clean_body(text: str) -> str:
    return textwrap.dedent(text.strip("\n")).rstrip()


def _unquote(name: str) -> str:
    return name[1:-1] if name.startswith('"') and name.endswith('"') else name


def parse_var_region(text: str) -> list[Variable]:
    """Parse the declarations that follow a ``VAR`` keyword, if any."""
    match = _VAR_RE.search(text)
    if not match:
        return []
    return parse_variable_block(text[match.end():])


def _preceding_attributes(body: str, header_start: int) -> list[str]:
    """Collect ``[Attribute]`` lines directly above a procedure header."""
    attributes = []
    end = header_start
    while end > 0:
        line_start = body.rfind("\n", 0, end - 1) + 1
        line = body[line_start:end].strip()
        if not (line.startswith("[") and line.endswith("]")):
            break
        attributes.insert(0, line)
        end = line_start
    return attributes


def parse_code_body(body: str, first_line: int = 1) -> CodeBlock:
    """Parse the text inside a CODE section's braces.

    Args:
        body: Section body text
        first_line: Line number of the body's first line in the object text
    """
    block = CodeBlock()

    first_member = _FIRST_MEMBER_RE.search(body)
    block.variables = parse_var_region(body[:first_member.start() if first_member else len(body)])

    headers = list(_PROCEDURE_RE.finditer(body))
    line_number = first_line
    last_pos = 0
    for idx, header in enumerate(headers):
        line_number += body.count("\n", last_pos, header.start())
        last_pos = header.start()

        region_end = headers[idx + 1].start() if idx + 1 < len(headers) else len(body)
        region = body[header.end():region_end]

        local_variables: list[Variable] = []
        proc_body = ""
        begin = _BEGIN_RE.search(region)
        if begin:
            local_variables = parse_var_region(region[:begin.start()])
            block_end = find_code_block_end(region, begin.start())
            if block_end == -1:
                logger.warning(f"Unterminated body for procedure {_unquote(header.group(2))}")
                inner_end = len(region)
            else:
                inner_end = block_end - len("END")
            proc_body = _clean_body(region[begin.end():inner_end])

        attributes = _preceding_attributes(body, header.start())
        return_type = header.group(6).strip() if header.group(6) else None

        block.procedures.append(Procedure(
            name=_unquote(header.group(2)),
            id=int(header.group(3)),
            parameters=parse_parameters(header.group(4)),
            return_type=return_type,
            return_name=_unquote(header.group(5)) if header.group(5) and return_type else None,
            local_variables=local_variables,
            body=proc_body,
            is_local=bool(header.group(1)),
            attributes=attributes,
            is_event_subscriber=any(a.startswith("[EventSubscriber") for a in attributes),
            is_event_publisher=any(
                a.startswith("[Integration") or a.startswith("[Business") for a in attributes
            ),
            line_number=line_number,
        ))

    block.documentation = _documentation(body)
    return block


def _documentation(body: str) -> Optional[str]:
    """Return the text of the closing ``BEGIN { ... } END.`` trigger."""
    starts = list(_DOC_BEGIN_RE.finditer(body))
    if not starts:
        return None
    match = _DOC_END_RE.match(body, starts[-1].end())
    if not match:
        return None
    return _clean_body(match.group(1)) or None


def parse_code(text: str) -> CodeBlock:
    """Locate and parse the CODE section of an object; empty when absent."""
    section = find_section(text, "CODE")
    if section is None:
        return CodeBlock()
    section_start = text.find(section)
    open_index = section.find("{")
    first_line = text.count("\n", 0, section_start + open_index + 1) + 1
    return parse_code_body(section[open_index + 1:section.rfind("}")], first_line)
