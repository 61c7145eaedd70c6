from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from gospec.api.dependencies import shutdown_analyzer, start_analyzer


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    await start_analyzer()
    yield
    await shutdown_analyzer()
