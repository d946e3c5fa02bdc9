"""Tests for the command line entry point."""

import json

import pytest

from calindex.cli import ExitCode, build_parser, main


def _output(capsys) -> dict:
    return json.loads(capsys.readouterr().out)


class TestParseCommand:
    """Tests for single file parsing."""

    def test_parse_fixture(self, capsys, fixtures_dir) -> None:
        assert main(["parse", str(fixtures_dir / "table_3.txt")]) == ExitCode.SUCCESS
        data = _output(capsys)
        assert (data["kind"], data["id"]) == ("Table", 3)

    def test_missing_file(self, capsys, tmp_path) -> None:
        assert main(["parse", str(tmp_path / "missing.txt")]) == ExitCode.FILE_NOT_FOUND

    def test_parse_error(self, tmp_path) -> None:
        path = tmp_path / "broken.txt"
        path.write_text("OBJECT Table 9 Broken\n{\n  PROPERTIES\n  {\n  }\n}\n", encoding="utf-8")
        assert main(["parse", str(path)]) == ExitCode.PARSE_ERROR


class TestQueryCommands:
    """Tests for commands that load a source first."""

    def test_search(self, capsys, fixtures_dir) -> None:
        assert main(["search", str(fixtures_dir), "Payment*", "-k", "Page"]) == ExitCode.SUCCESS
        data = _output(capsys)
        assert data["success"] is True
        assert [o["id"] for o in data["data"]["objects"]] == [4]

    def test_code_search(self, capsys, fixtures_dir) -> None:
        assert main(["search", str(fixtures_dir), "SETRANGE", "--code"]) == ExitCode.SUCCESS
        assert _output(capsys)["data"]["matches"][0]["procedure"] == "ApplyTerms"

    def test_show_missing_object(self, capsys, fixtures_dir) -> None:
        assert main(["show", str(fixtures_dir), "Table", "999"]) == ExitCode.FILE_NOT_FOUND
        assert _output(capsys)["error"]["code"] == "NOT_FOUND"

    def test_show_summary(self, capsys, fixtures_dir) -> None:
        assert main(["show", str(fixtures_dir), "Table", "Payment Terms", "--summary"]) == ExitCode.SUCCESS
        assert _output(capsys)["data"]["total_fields"] == 7

    def test_invalid_argument(self, capsys, fixtures_dir) -> None:
        assert main(["search", str(fixtures_dir), "-k", "Widget"]) == ExitCode.INVALID_INPUT

    def test_missing_source(self, tmp_path) -> None:
        assert main(["stats", str(tmp_path / "nowhere")]) == ExitCode.FILE_NOT_FOUND

    def test_refs_and_deps(self, capsys, fixtures_dir) -> None:
        assert main(["refs", str(fixtures_dir), "Payment Terms", "--type", "TableNo"]) == ExitCode.SUCCESS
        assert _output(capsys)["data"]["total"] == 1
        assert main(["deps", str(fixtures_dir), "Page", "4", "--direction", "outgoing"]) == ExitCode.SUCCESS
        assert len(_output(capsys)["data"]["outgoing"]) == 2

    def test_relations(self, capsys, fixtures_dir) -> None:
        assert main(["relations", str(fixtures_dir), "--formulas"]) == ExitCode.SUCCESS
        assert _output(capsys)["data"]["total_relations"] == 2

    def test_relations_by_kind(self, capsys, fixtures_dir) -> None:
        assert main(["relations", str(fixtures_dir), "-k", "Page"]) == ExitCode.SUCCESS
        assert _output(capsys)["data"]["total_relations"] == 0
        assert main(["relations", str(fixtures_dir), "-k", "Widget"]) == ExitCode.INVALID_INPUT

    def test_transitive_deps(self, capsys, fixtures_dir) -> None:
        assert main(["deps", str(fixtures_dir), "Page", "4", "--transitive"]) == ExitCode.SUCCESS
        data = _output(capsys)["data"]
        assert [d["kind"] for d in data["dependents"]] == ["MenuSuite"]
        assert {d.get("id") for d in data["dependencies"]} >= {3, 757}

    def test_output_file(self, capsys, fixtures_dir, tmp_path) -> None:
        target = tmp_path / "stats.json"
        assert main(["-o", str(target), "stats", str(fixtures_dir)]) == ExitCode.SUCCESS
        assert "Results saved" in capsys.readouterr().out
        data = json.loads(target.read_text(encoding="utf-8"))
        assert data["data"]["total_objects"] == 7


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self) -> None:
        args = build_parser().parse_args(["search", "exports"])
        assert (args.pattern, args.kind, args.code, args.offset) == ("*", None, False, 0)

    def test_version(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0
        assert capsys.readouterr().out.startswith("calindex ")
