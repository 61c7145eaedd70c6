import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from gospec.cli.analysis import debug, enhance, handler, handlers, routes, scan, struct
from gospec.cli.serve import serve_app
from gospec.cli.watch import watch
from gospec.config import get_settings

app = typer.Typer(
    name="gospec",
    help="gospec CLI: infer API schemas from Go handler source.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def configure(
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="Logging level (defaults to GOSPEC_LOG_LEVEL).")
    ] = None,
) -> None:
    level = (log_level or get_settings().log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


app.command("scan")(scan)
app.command("handlers")(handlers)
app.command("handler")(handler)
app.command("struct")(struct)
app.command("routes")(routes)
app.command("enhance")(enhance)
app.command("debug")(debug)
app.command("watch")(watch)
app.add_typer(serve_app, name="serve")


def main() -> None:
    app()
