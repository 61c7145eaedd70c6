from __future__ import annotations

from fastapi import FastAPI

from gospec.api.lifespan import lifespan
from gospec.api.routes.analysis import router as analysis_router
from gospec.api.routes.health import router as health_router
from gospec.api.routes.root import router as root_router


def create_app() -> FastAPI:
    app = FastAPI(
        title="gospec API",
        description="Request and response schemas inferred from Go handler source.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(root_router, include_in_schema=False)
    app.include_router(health_router, include_in_schema=False)
    app.include_router(analysis_router)

    return app
