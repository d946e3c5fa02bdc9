"""Shared fixtures for calindex tests."""

from pathlib import Path

import pytest

from calindex.core.parsers import parse_object
from calindex.services.query import QueryContext

FIXTURES_DIR = Path(__file__).parent / "fixtures"

FIXTURE_FILES = {
    "table": "table_3.txt",
    "page": "page_4.txt",
    "codeunit": "codeunit_50000.txt",
    "report": "report_50001.txt",
    "query": "query_50002.txt",
    "xmlport": "xmlport_50003.txt",
    "menusuite": "menusuite_1010.txt",
}


def read_fixture(name: str) -> str:
    return (FIXTURES_DIR / FIXTURE_FILES[name]).read_text(encoding="utf-8")


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def table_text() -> str:
    return read_fixture("table")


@pytest.fixture
def page_text() -> str:
    return read_fixture("page")


@pytest.fixture
def codeunit_text() -> str:
    return read_fixture("codeunit")


@pytest.fixture
def report_text() -> str:
    return read_fixture("report")


@pytest.fixture
def query_text() -> str:
    return read_fixture("query")


@pytest.fixture
def xmlport_text() -> str:
    return read_fixture("xmlport")


@pytest.fixture
def menusuite_text() -> str:
    return read_fixture("menusuite")


@pytest.fixture
def all_objects():
    """Every fixture object, parsed, in fixture order."""
    return [parse_object(read_fixture(name)) for name in FIXTURE_FILES]


@pytest.fixture
def multi_object_text() -> str:
    """All fixture objects concatenated into one export."""
    return "\n".join(read_fixture(name) for name in FIXTURE_FILES)


@pytest.fixture
def loaded_context() -> QueryContext:
    ctx = QueryContext()
    ctx.load(str(FIXTURES_DIR))
    return ctx
