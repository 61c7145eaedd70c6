from __future__ import annotations

from typing import Any

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root() -> dict[str, Any]:
    """API directory for programmatic and human clients."""
    return {
        "meta": {
            "title": "gospec API",
            "description": "Request and response schemas inferred from Go handler source.",
            "version": "0.1.0",
        },
        "links": {
            "self": "/",
            "structs": "/structs",
            "handlers": "/handlers",
            "routes": "/routes",
            "parse-errors": "/parse-errors",
            "enhance": "/enhance",
            "reload": "/reload",
            "debug": "/debug/ast",
            "openapi": "/openapi.json",
            "docs": "/docs",
        },
    }
