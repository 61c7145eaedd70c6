"""FastMCP server exposing the Go handler analysis as tools."""

from __future__ import annotations

import asyncio
from typing import Any

from fastmcp import FastMCP

from gospec.api.schemas import endpoint_detail, handler_detail, handler_summary, struct_detail, struct_summary
from gospec.core.ports.schema_source import ApiSchemaSource
from gospec.models import EndpointDescriptor


def create_mcp_server(analyzer: ApiSchemaSource) -> FastMCP:
    """Create a FastMCP server wired to the given analyzer."""

    mcp = FastMCP("gospec", instructions="Inspect request/response schemas inferred from Go HTTP handlers.")

    @mcp.tool()
    async def discover(root: str | None = None) -> str:
        """Re-scan a Go source tree for marked files and analyze its handlers."""
        await asyncio.to_thread(analyzer.discover, root)
        handlers = analyzer.get_all_handlers()
        errors = analyzer.get_parse_errors()
        return f"Analyzed {len(handlers)} handlers ({len(errors)} parse errors)"

    @mcp.tool()
    async def list_handlers() -> list[dict[str, Any]]:
        """List analyzed handlers with their request/response types."""
        handlers = analyzer.get_all_handlers()
        return [handler_summary(handlers[name]).model_dump() for name in sorted(handlers)]

    @mcp.tool()
    async def get_handler(name: str) -> dict[str, Any]:
        """Full analysis of one handler, including inferred schemas."""
        handler = analyzer.get_handler_by_name(name)
        if handler is None:
            return {"error": f"Unknown handler: {name}"}
        return handler_detail(handler)

    @mcp.tool()
    async def list_structs() -> list[dict[str, Any]]:
        """List struct types found in the analyzed files and their imports."""
        structs = analyzer.get_all_structs()
        return [struct_summary(structs[name]).model_dump() for name in sorted(structs)]

    @mcp.tool()
    async def get_struct(name: str) -> dict[str, Any]:
        """One struct's fields and synthesized schema."""
        struct = analyzer.get_struct_by_name(name)
        if struct is None:
            return {"error": f"Unknown struct: {name}"}
        return struct_detail(struct)

    @mcp.tool()
    async def enhance_endpoint(method: str, path: str, handler: str) -> dict[str, Any]:
        """Describe an endpoint from the handler it is registered with."""
        endpoint = EndpointDescriptor(method=method.upper(), path=path, handler=handler)
        outcome = analyzer.enhance_endpoint(endpoint)
        return {"outcome": outcome.value, "endpoint": endpoint_detail(endpoint)}

    @mcp.tool()
    async def parse_errors() -> list[str]:
        """Files that were skipped because they failed to parse."""
        return [str(error) for error in analyzer.get_parse_errors()]

    return mcp
