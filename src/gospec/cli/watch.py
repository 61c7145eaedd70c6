import asyncio
from pathlib import Path

from rich.console import Console

from gospec.cli.analysis import MarkerOption, RootOption, load_analyzer
from gospec.watcher.watchfiles_adapter import GoSourceWatcher

console = Console()


def watch(root: RootOption = None, marker: MarkerOption = None) -> None:
    """Re-analyze whenever Go files under the root change."""
    analyzer = load_analyzer(root, marker)
    scan_root = analyzer.settings.root
    console.print(f"[green]Watching[/green] {scan_root} ({len(analyzer.get_all_handlers())} handlers)")

    async def _on_change(paths: set[Path]) -> None:
        await asyncio.to_thread(analyzer.discover)
        errors = analyzer.get_parse_errors()
        console.print(
            f"[green]Re-analyzed[/green] after {len(paths)} change(s): "
            f"{len(analyzer.get_all_handlers())} handlers, {len(errors)} parse errors"
        )

    async def _run() -> None:
        watcher = GoSourceWatcher(scan_root, _on_change)
        await watcher.start()
        try:
            await asyncio.Event().wait()
        finally:
            await watcher.stop()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        console.print("Stopped.")
