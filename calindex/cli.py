"""Command line entry point: load exports and run queries, printing JSON."""

import argparse
import json
import sys
from pathlib import Path

from calindex.config.logging_config import configure_logging
from calindex.config.settings import settings
from calindex.core.enums import ReferenceType
from calindex.core.exceptions import FileSizeExceededError, ParserException, SourcePathNotFoundError
from calindex.core.parsers import parse_object
from calindex.core.parsers.base import detect_and_decode
from calindex.services.query import (
    QueryContext,
    find_references,
    get_dependencies,
    get_object,
    get_relation_map,
    get_summary,
    manage_files,
    search_code,
    search_objects,
)


class ExitCode:
    SUCCESS = 0
    FILE_NOT_FOUND = 1
    PARSE_ERROR = 4
    INVALID_INPUT = 5
    OUTPUT_ERROR = 6


def _emit(payload: dict, output: str | None) -> int:
    text = json.dumps(payload, indent=2, default=str)
    if output:
        try:
            Path(output).write_text(text, encoding="utf-8")
        except OSError as e:
            print(f"Error: cannot write {output}: {e}", file=sys.stderr)
            return ExitCode.OUTPUT_ERROR
        print(f"Success: Results saved to {output}")
    else:
        print(text)
    return ExitCode.SUCCESS


def _emit_response(response, output: str | None) -> int:
    payload = response.model_dump(mode="json")
    code = _emit(payload, output)
    if code != ExitCode.SUCCESS:
        return code
    if response.success:
        return ExitCode.SUCCESS
    if response.not_found:
        return ExitCode.FILE_NOT_FOUND
    return ExitCode.INVALID_INPUT


# =============================================================================
# Commands
# =============================================================================

def _cmd_parse(args) -> int:
    path = Path(args.input)
    if not path.is_file():
        print(f"Error: File {args.input} not found.", file=sys.stderr)
        return ExitCode.FILE_NOT_FOUND
    text, _ = detect_and_decode(path.read_bytes())
    try:
        entity = parse_object(text)
    except ParserException as e:
        print(f"Parse Error: {e}", file=sys.stderr)
        return ExitCode.PARSE_ERROR
    return _emit(entity.to_dict(), args.output)


def _load(args) -> QueryContext | int:
    ctx = QueryContext()
    try:
        result = ctx.load(args.source)
    except SourcePathNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.FILE_NOT_FOUND
    except FileSizeExceededError as e:
        print(f"Error: {e}", file=sys.stderr)
        return ExitCode.INVALID_INPUT
    for error in result.errors:
        print(f"WARNING: {error.file_path}: {error.message}", file=sys.stderr)
    return ctx


def _with_context(handler):
    def run(args) -> int:
        ctx = _load(args)
        if isinstance(ctx, int):
            return ctx
        return _emit_response(handler(ctx, args), args.output)
    return run


def _search(ctx, args):
    if args.code:
        return search_code(ctx, args.pattern, kind=args.kind, limit=args.limit)
    return search_objects(ctx, args.pattern, kind=args.kind, limit=args.limit, offset=args.offset)


def _show(ctx, args):
    if args.summary:
        return get_summary(ctx, args.name, kind=args.kind)
    return get_object(ctx, args.kind, args.name)


def _refs(ctx, args):
    return find_references(
        ctx, args.target, field_name=args.field, reference_type=args.type,
        source_kind=args.source_kind, limit=args.limit, offset=args.offset,
    )


def _deps(ctx, args):
    return get_dependencies(ctx, args.kind, args.name, direction=args.direction, transitive=args.transitive)


def _relations(ctx, args):
    return get_relation_map(ctx, kind=args.kind, table_id=args.table, include_formula_refs=args.formulas)


def _stats(ctx, args):
    return manage_files(ctx, "stats")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="calindex", description="Index and query C/AL object text exports")
    parser.add_argument("--version", action="version", version=f"{settings.APP_NAME} {settings.APP_VERSION}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("-o", "--output", help="Output JSON file")
    commands = parser.add_subparsers(dest="command", required=True)

    parse_cmd = commands.add_parser("parse", help="Parse a single object file to JSON")
    parse_cmd.add_argument("input", help="Input object file path")
    parse_cmd.set_defaults(handler=_cmd_parse)

    def with_source(name: str, help_text: str) -> argparse.ArgumentParser:
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("source", help="Export file or directory to load")
        return sub

    search_cmd = with_source("search", "Search object names, or procedure code with --code")
    search_cmd.add_argument("pattern", nargs="?", default="*", help="Name wildcard, or regex with --code")
    search_cmd.add_argument("-k", "--kind", help="Restrict to one object kind")
    search_cmd.add_argument("--code", action="store_true", help="Search procedure bodies")
    search_cmd.add_argument("--limit", type=int)
    search_cmd.add_argument("--offset", type=int, default=0)
    search_cmd.set_defaults(handler=_with_context(_search))

    show_cmd = with_source("show", "Show one object")
    show_cmd.add_argument("kind", help="Object kind")
    show_cmd.add_argument("name", help="Object id or name")
    show_cmd.add_argument("--summary", action="store_true", help="Show a compact summary")
    show_cmd.set_defaults(handler=_with_context(_show))

    refs_cmd = with_source("refs", "Find references to an object")
    refs_cmd.add_argument("target", help="Target object name")
    refs_cmd.add_argument("--field", help="Restrict to references naming this field")
    refs_cmd.add_argument("--type", choices=[t.value for t in ReferenceType])
    refs_cmd.add_argument("--source-kind", dest="source_kind")
    refs_cmd.add_argument("--limit", type=int)
    refs_cmd.add_argument("--offset", type=int, default=0)
    refs_cmd.set_defaults(handler=_with_context(_refs))

    deps_cmd = with_source("deps", "Show incoming and outgoing references of an object")
    deps_cmd.add_argument("kind", help="Object kind")
    deps_cmd.add_argument("name", help="Object id or name")
    deps_cmd.add_argument("--direction", choices=["incoming", "outgoing", "both"], default="both")
    deps_cmd.add_argument("--transitive", action="store_true", help="Also list objects reached through other objects")
    deps_cmd.set_defaults(handler=_with_context(_deps))

    relations_cmd = with_source("relations", "Show table relations")
    relations_cmd.add_argument("-k", "--kind", help="Object kind to map (default: Table)")
    relations_cmd.add_argument("--table", type=int, help="Restrict to one object id")
    relations_cmd.add_argument("--formulas", action="store_true", help="Include CalcFormula references")
    relations_cmd.set_defaults(handler=_with_context(_relations))

    stats_cmd = with_source("stats", "Show object and reference counts")
    stats_cmd.set_defaults(handler=_with_context(_stats))

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging("DEBUG" if args.verbose else "WARNING")
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())
