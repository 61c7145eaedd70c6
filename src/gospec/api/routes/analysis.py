from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from gospec.api.dependencies import get_analyzer
from gospec.api.schemas import (
    EnhanceRequest,
    EnhanceResponse,
    HandlerSummary,
    ReloadRequest,
    ReloadResponse,
    StructSummary,
    endpoint_detail,
    handler_detail,
    handler_summary,
    struct_detail,
    struct_summary,
)
from gospec.core.ports.schema_source import ApiSchemaSource
from gospec.models import EndpointDescriptor, ParseError, RouteRegistration

router = APIRouter(tags=["analysis"])


@router.get("/structs", response_model=list[StructSummary])
async def list_structs(analyzer: ApiSchemaSource = Depends(get_analyzer)) -> list[StructSummary]:
    structs = analyzer.get_all_structs()
    return [struct_summary(structs[name]) for name in sorted(structs)]


@router.get("/structs/{name}")
async def get_struct(name: str, analyzer: ApiSchemaSource = Depends(get_analyzer)) -> dict[str, Any]:
    struct = analyzer.get_struct_by_name(name)
    if struct is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown struct: {name}")
    return struct_detail(struct)


@router.get("/handlers", response_model=list[HandlerSummary])
async def list_handlers(analyzer: ApiSchemaSource = Depends(get_analyzer)) -> list[HandlerSummary]:
    handlers = analyzer.get_all_handlers()
    return [handler_summary(handlers[name]) for name in sorted(handlers)]


@router.get("/handlers/{name}")
async def get_handler(name: str, analyzer: ApiSchemaSource = Depends(get_analyzer)) -> dict[str, Any]:
    handler = analyzer.get_handler_by_name(name)
    if handler is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown handler: {name}")
    return handler_detail(handler)


@router.get("/parse-errors", response_model=list[ParseError])
async def parse_errors(analyzer: ApiSchemaSource = Depends(get_analyzer)) -> list[ParseError]:
    return analyzer.get_parse_errors()


@router.get("/routes", response_model=list[RouteRegistration])
async def routes(analyzer: ApiSchemaSource = Depends(get_analyzer)) -> list[RouteRegistration]:
    return analyzer.route_registrations()


@router.post("/enhance", response_model=EnhanceResponse)
async def enhance(body: EnhanceRequest, analyzer: ApiSchemaSource = Depends(get_analyzer)) -> EnhanceResponse:
    """Fill an endpoint descriptor from the analyzed handler it names."""
    endpoint = EndpointDescriptor(
        method=body.method.upper(),
        path=body.path,
        handler=body.handler,
        description=body.description,
        tags=list(body.tags),
    )
    outcome = analyzer.enhance_endpoint(endpoint)
    return EnhanceResponse(outcome=outcome, endpoint=endpoint_detail(endpoint))


@router.post("/reload", response_model=ReloadResponse)
async def reload(
    body: ReloadRequest | None = None,
    analyzer: ApiSchemaSource = Depends(get_analyzer),
) -> ReloadResponse:
    root = body.root if body is not None else None
    try:
        await asyncio.to_thread(analyzer.discover, root)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return ReloadResponse(
        handlers=len(analyzer.get_all_handlers()),
        structs=len(analyzer.get_all_structs()),
        parse_errors=len(analyzer.get_parse_errors()),
    )


@router.get("/debug/ast")
async def debug_ast(analyzer: ApiSchemaSource = Depends(get_analyzer)) -> dict[str, Any]:
    """Everything the analysis knows, for diagnosing a missing or wrong schema."""
    return analyzer.debug_data()
