"""Tests for the gospec CLI."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest
from typer.testing import CliRunner

from gospec.cli.app import app

runner = CliRunner()

HANDLERS = """
// API_SOURCE
package api

type Item struct {
    Name string `json:"name"`
}

// API_TAGS Items
func listItemsHandler(e *core.RequestEvent) error {
    items, _ := e.App.FindRecordsByFilter("items", "")
    return e.JSON(200, map[string]any{"items": items, "count": len(items)})
}

func register(se *core.ServeEvent) {
    se.Router.GET("/api/items", listItemsHandler)
}
"""


@pytest.fixture
def project(write_go_project: Callable[[dict[str, str]], Path]) -> Path:
    return write_go_project({"api/handlers.go": HANDLERS})


@pytest.mark.parametrize(
    "args",
    [[], ["scan"], ["handlers"], ["handler"], ["struct"], ["routes"], ["enhance"], ["debug"], ["watch"], ["serve"]],
    ids=["root", "scan", "handlers", "handler", "struct", "routes", "enhance", "debug", "watch", "serve"],
)
def test_short_help_flag(args: list[str]) -> None:
    result = runner.invoke(app, [*args, "-h"])
    assert result.exit_code == 0
    assert "Usage" in result.output


class TestCommands:
    def test_scan(self, project: Path) -> None:
        result = runner.invoke(app, ["scan", "--root", str(project)])
        assert result.exit_code == 0, result.output
        assert "1 handlers and 1 structs" in result.output

    def test_scan_reports_parse_errors(self, write_go_project: Callable[[dict[str, str]], Path]) -> None:
        root = write_go_project({"api/handlers.go": HANDLERS, "api/bad.go": "// API_SOURCE\npackage api\nfunc (\n"})
        result = runner.invoke(app, ["scan", "--root", str(root)])
        assert result.exit_code == 2
        assert "Skipped" in result.output

    def test_missing_root(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["scan", "--root", str(tmp_path / "nope")])
        assert result.exit_code == 1

    def test_handlers_table(self, project: Path) -> None:
        result = runner.invoke(app, ["handlers", "--root", str(project)])
        assert result.exit_code == 0, result.output
        assert "listItemsHandler" in result.output
        assert "(1 rows)" in result.output

    def test_handler_detail(self, project: Path) -> None:
        result = runner.invoke(app, ["handler", "listItemsHandler", "--root", str(project)])
        assert result.exit_code == 0, result.output
        assert "listItemsHandler" in result.output
        assert "query" in result.output

    def test_unknown_handler(self, project: Path) -> None:
        result = runner.invoke(app, ["handler", "nope", "--root", str(project)])
        assert result.exit_code == 1

    def test_struct_detail(self, project: Path) -> None:
        result = runner.invoke(app, ["struct", "Item", "--root", str(project)])
        assert result.exit_code == 0, result.output
        assert '"name"' in result.output

    def test_routes(self, project: Path) -> None:
        result = runner.invoke(app, ["routes", "--root", str(project)])
        assert result.exit_code == 0, result.output
        assert "/api/items" in result.output

    def test_enhance_matched(self, project: Path) -> None:
        result = runner.invoke(app, ["enhance", "get", "/api/items", "main.listItemsHandler", "--root", str(project)])
        assert result.exit_code == 0, result.output
        body = json.loads(result.output)
        assert body["outcome"] == "matched"
        assert body["endpoint"]["tags"] == ["Items"]

    def test_enhance_unmatched(self, project: Path) -> None:
        result = runner.invoke(app, ["enhance", "GET", "/x", "api.other", "--root", str(project)])
        assert result.exit_code == 1

    def test_debug_is_json(self, project: Path) -> None:
        result = runner.invoke(app, ["debug", "--root", str(project)])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["ast"]["total_handlers"] == 1
