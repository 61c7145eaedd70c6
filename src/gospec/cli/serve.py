import typer
from rich.console import Console

serve_app = typer.Typer(help="Start servers.")
console = Console()


@serve_app.command("api")
def api(
    host: str = "127.0.0.1",
    port: int = 8000,
) -> None:
    """Start the FastAPI REST API server."""
    import uvicorn

    from gospec.api.app import create_app

    app = create_app()
    console.print(f"[green]Starting API server on {host}:{port}[/green]")
    uvicorn.run(app, host=host, port=port)


@serve_app.command("mcp")
def mcp(
    transport: str = "stdio",
    root: str | None = None,
) -> None:
    """Start the MCP server."""
    from gospec.config import get_settings
    from gospec.core.analyzer import SourceAnalyzer
    from gospec.mcp.server import create_mcp_server

    analyzer = SourceAnalyzer(get_settings().override(root=root))
    analyzer.discover()
    server = create_mcp_server(analyzer)
    console.print(f"[green]Starting MCP server (transport: {transport})[/green]")
    server.run(transport=transport)  # type: ignore[arg-type]
