"""Shared fixtures and helpers for tests."""

import textwrap
from collections.abc import Callable
from pathlib import Path

import pytest
from tree_sitter import Language, Node, Parser
from tree_sitter_language_pack import get_language, get_parser

from gospec.config import Settings
from gospec.core.analyzer import SourceAnalyzer
from gospec.core.declarations import extract_declarations
from gospec.core.handlers import HandlerAnalyzer
from gospec.core.parsing import parse_go_source
from gospec.core.registry import TypeRegistry
from gospec.models import HandlerDescriptor

_REPO_ROOT = Path(__file__).parent.parent

GoProjectWriter = Callable[[dict[str, str]], Path]


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        if rel.parts and rel.parts[0] == "unit":
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Shared unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def go_parser() -> Parser:
    """Return a tree-sitter parser for Go."""
    return get_parser("go")


@pytest.fixture
def go_language() -> Language:
    """Return the tree-sitter Go language."""
    return get_language("go")


@pytest.fixture
def parse_go() -> Callable[[str], Node]:
    """Parse a dedented Go snippet and return the root node."""

    def _parse(source: str) -> Node:
        return parse_go_source(textwrap.dedent(source).encode("utf-8")).root_node

    return _parse


@pytest.fixture
def write_go_project(tmp_path: Path) -> GoProjectWriter:
    """Write ``{relative_path: source}`` under a temporary root and return the root."""

    def _write(files: dict[str, str]) -> Path:
        for relative, source in files.items():
            target = tmp_path / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(textwrap.dedent(source).lstrip(), encoding="utf-8")
        return tmp_path

    return _write


@pytest.fixture
def analyze_project(write_go_project: GoProjectWriter) -> Callable[[dict[str, str]], SourceAnalyzer]:
    """Write a Go project, run discovery over it and return the analyzer."""

    def _analyze(files: dict[str, str]) -> SourceAnalyzer:
        root = write_go_project(files)
        analyzer = SourceAnalyzer(Settings(root=str(root)))
        analyzer.discover()
        return analyzer

    return _analyze


@pytest.fixture
def analyze_handlers(parse_go: Callable[[str], Node]) -> Callable[[str], dict[str, HandlerDescriptor]]:
    """Run the declaration and handler passes over one in-memory Go file."""

    def _analyze(source: str) -> dict[str, HandlerDescriptor]:
        declarations = extract_declarations(parse_go(source), "handlers.go")
        registry = TypeRegistry()
        for struct in declarations.structs:
            registry.register_type(struct)
        for name, target in declarations.aliases.items():
            registry.register_alias(name, target)
        registry.synthesize_all()

        analyzer = HandlerAnalyzer(registry)
        analyzer.functions.build(declarations.functions, analyzer)
        handlers = (
            analyzer.analyze(function, "handlers.go", declarations.package)
            for function in declarations.functions
            if analyzer.is_handler_function(function)
        )
        return {handler.name: handler for handler in handlers}

    return _analyze
