from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Coroutine
from pathlib import Path
from typing import Any

from watchfiles import awatch

from gospec.core.discovery import SKIPPED_DIRS, is_go_source

logger = logging.getLogger(__name__)


def is_relevant_path(path: Path, root: Path) -> bool:
    """Go sources outside vendored, test-data and hidden directories below ``root``."""
    try:
        directories = path.relative_to(root).parent.parts
    except ValueError:
        directories = path.parent.parts
    if any(part in SKIPPED_DIRS or part.startswith(".") for part in directories):
        return False
    return is_go_source(path)


class GoSourceWatcher:
    """Watch a Go source tree and call back with the changed ``.go`` files."""

    def __init__(
        self,
        directory: str | Path,
        on_change: Callable[[set[Path]], Coroutine[Any, Any, None]],
    ) -> None:
        self._directory = Path(directory)
        self._on_change = on_change
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    async def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._watch())
        logger.info("Watching %s for Go source changes", self._directory)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Stopped watching %s", self._directory)

    async def _watch(self) -> None:
        async for changes in awatch(self._directory):
            paths = {Path(p) for _, p in changes if is_relevant_path(Path(p), self._directory)}
            if paths:
                logger.info("Detected changes in %d Go file(s)", len(paths))
                try:
                    await self._on_change(paths)
                except Exception:
                    logger.exception("Re-analysis after file change failed")
