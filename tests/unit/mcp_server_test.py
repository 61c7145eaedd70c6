"""Tests for the MCP server tool definitions."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from gospec.config import Settings
from gospec.core.analyzer import SourceAnalyzer
from gospec.mcp.server import create_mcp_server

HANDLERS = """
// API_SOURCE
package api

type Status struct {
    Ready bool `json:"ready"`
}

func statusHandler(e *core.RequestEvent) error {
    return e.JSON(200, Status{Ready: true})
}
"""


@pytest.fixture
def analyzer(write_go_project: Callable[[dict[str, str]], Path]) -> SourceAnalyzer:
    root = write_go_project({"api/status.go": HANDLERS})
    analyzer = SourceAnalyzer(Settings(root=str(root)))
    analyzer.discover()
    return analyzer


def _tool(analyzer: SourceAnalyzer, name: str) -> Any:
    server = create_mcp_server(analyzer)
    return server._tool_manager._tools[name].fn  # type: ignore[attr-defined]


class TestMcpServerCreation:
    def test_creates_server(self, analyzer: SourceAnalyzer) -> None:
        server = create_mcp_server(analyzer)
        assert server.name == "gospec"

    def test_server_has_tools(self, analyzer: SourceAnalyzer) -> None:
        server = create_mcp_server(analyzer)
        tool_names = {t.name for t in server._tool_manager._tools.values()}
        assert tool_names == {
            "discover",
            "list_handlers",
            "get_handler",
            "list_structs",
            "get_struct",
            "enhance_endpoint",
            "parse_errors",
        }


class TestMcpTools:
    @pytest.mark.asyncio
    async def test_list_handlers(self, analyzer: SourceAnalyzer) -> None:
        handlers = await _tool(analyzer, "list_handlers")()
        assert [h["name"] for h in handlers] == ["statusHandler"]

    @pytest.mark.asyncio
    async def test_get_unknown_handler(self, analyzer: SourceAnalyzer) -> None:
        result = await _tool(analyzer, "get_handler")(name="missing")
        assert "error" in result

    @pytest.mark.asyncio
    async def test_get_struct(self, analyzer: SourceAnalyzer) -> None:
        result = await _tool(analyzer, "get_struct")(name="Status")
        assert result["schema"]["properties"]["ready"] == {"type": "boolean"}

    @pytest.mark.asyncio
    async def test_enhance_endpoint(self, analyzer: SourceAnalyzer) -> None:
        result = await _tool(analyzer, "enhance_endpoint")(method="get", path="/status", handler="api.statusHandler")
        assert result["outcome"] == "matched"
        assert result["endpoint"]["response"] == {"$ref": "#/components/schemas/Status"}

    @pytest.mark.asyncio
    async def test_discover(self, analyzer: SourceAnalyzer) -> None:
        message = await _tool(analyzer, "discover")()
        assert message == "Analyzed 1 handlers (0 parse errors)"
