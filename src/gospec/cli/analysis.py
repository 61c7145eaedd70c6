import json
from collections.abc import Sequence
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from gospec.api.schemas import endpoint_detail, handler_detail, struct_detail
from gospec.config import get_settings
from gospec.core.analyzer import SourceAnalyzer
from gospec.models import EndpointDescriptor, EnhanceOutcome

console = Console()

RootOption = Annotated[str | None, typer.Option("--root", help="Go source tree to scan (defaults to GOSPEC_ROOT).")]
MarkerOption = Annotated[str | None, typer.Option("--marker", help="Opt-in comment marker (defaults to API_SOURCE).")]


def _render_table(headers: Sequence[str], rows: Sequence[tuple[Any, ...]]) -> None:
    table = Table(show_lines=False)
    for h in headers:
        table.add_column(h)
    for row in rows:
        table.add_row(*(str(v) for v in row))
    console.print(table)
    console.print(f"({len(rows)} rows)")


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def load_analyzer(root: str | None, marker: str | None = None) -> SourceAnalyzer:
    analyzer = SourceAnalyzer(get_settings().override(root=root, marker=marker))
    try:
        analyzer.discover()
    except FileNotFoundError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc
    return analyzer


def scan(root: RootOption = None, marker: MarkerOption = None) -> None:
    """Discover marked Go files and summarize what was found."""
    analyzer = load_analyzer(root, marker)
    handlers = analyzer.get_all_handlers()
    structs = analyzer.get_all_structs()
    errors = analyzer.get_parse_errors()
    console.print(f"[green]Analyzed[/green] {len(handlers)} handlers and {len(structs)} structs")
    for error in errors:
        console.print(f"[yellow]Skipped[/yellow] {error}")
    if errors:
        raise typer.Exit(code=2)


def handlers(root: RootOption = None, marker: MarkerOption = None) -> None:
    """List analyzed handlers."""
    analyzer = load_analyzer(root, marker)
    found = analyzer.get_all_handlers()
    rows = [
        (
            h.name,
            h.request_type or "-",
            h.response_type or ("inline" if h.response_schema else "-"),
            h.auth_category or "-",
            ",".join(h.data_operations) or "-",
        )
        for h in (found[name] for name in sorted(found))
    ]
    _render_table(["name", "request", "response", "auth", "data"], rows)


def handler(
    name: Annotated[str, typer.Argument(help="Handler name, e.g. ListUsers or API.ListUsers.")],
    root: RootOption = None,
    marker: MarkerOption = None,
) -> None:
    """Show the full analysis of one handler."""
    found = load_analyzer(root, marker).get_handler_by_name(name)
    if found is None:
        console.print(f"[red]Unknown handler:[/red] {name}")
        raise typer.Exit(code=1)
    _print_json(handler_detail(found))


def struct(
    name: Annotated[str, typer.Argument(help="Struct type name.")],
    root: RootOption = None,
    marker: MarkerOption = None,
) -> None:
    """Show a struct's fields and synthesized schema."""
    found = load_analyzer(root, marker).get_struct_by_name(name)
    if found is None:
        console.print(f"[red]Unknown struct:[/red] {name}")
        raise typer.Exit(code=1)
    _print_json(struct_detail(found))


def routes(root: RootOption = None, marker: MarkerOption = None) -> None:
    """List route registrations found in the marked files."""
    registrations = load_analyzer(root, marker).route_registrations()
    _render_table(
        ["method", "path", "handler", "auth"],
        [(r.method, r.path, r.handler, r.auth_category or "-") for r in registrations],
    )


def enhance(
    method: Annotated[str, typer.Argument(help="HTTP method.")],
    path: Annotated[str, typer.Argument(help="Route path.")],
    handler_name: Annotated[str, typer.Argument(metavar="HANDLER", help="Handler reference as registered.")],
    root: RootOption = None,
    marker: MarkerOption = None,
) -> None:
    """Describe one endpoint from its handler."""
    endpoint = EndpointDescriptor(method=method.upper(), path=path, handler=handler_name)
    outcome = load_analyzer(root, marker).enhance_endpoint(endpoint)
    _print_json({"outcome": outcome.value, "endpoint": endpoint_detail(endpoint)})
    if outcome is EnhanceOutcome.UNMATCHED:
        raise typer.Exit(code=1)


def debug(root: RootOption = None, marker: MarkerOption = None) -> None:
    """Dump everything the analysis knows as JSON."""
    _print_json(load_analyzer(root, marker).debug_data())
