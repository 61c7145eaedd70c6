from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

from gospec.config import get_settings
from gospec.core.analyzer import SourceAnalyzer
from gospec.core.ports.schema_source import ApiSchemaSource

_analyzer: SourceAnalyzer | None = None


def _get_or_create() -> SourceAnalyzer:
    global _analyzer  # noqa: PLW0603
    if _analyzer is None:
        _analyzer = SourceAnalyzer(get_settings())
    return _analyzer


async def get_analyzer() -> AsyncIterator[ApiSchemaSource]:
    """Yield the process-wide ``SourceAnalyzer``, creating it lazily on first call."""
    yield _get_or_create()


async def start_analyzer() -> None:
    analyzer = _get_or_create()
    await asyncio.to_thread(analyzer.discover)


async def shutdown_analyzer() -> None:
    global _analyzer  # noqa: PLW0603
    if _analyzer is not None:
        _analyzer.clear_cache()
        _analyzer = None
