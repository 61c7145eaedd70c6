from fastapi import APIRouter, Depends, Response, status

from gospec.api.dependencies import get_analyzer
from gospec.api.schemas import HealthResponse, ReadinessResponse
from gospec.core.ports.schema_source import ApiSchemaSource

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse()


@router.get("/healthz/live", response_model=HealthResponse)
async def liveness() -> HealthResponse:
    """Liveness probe: is the process alive?"""
    return HealthResponse()


@router.get("/healthz/ready", response_model=ReadinessResponse)
async def readiness(
    response: Response,
    analyzer: ApiSchemaSource = Depends(get_analyzer),
) -> ReadinessResponse:
    """Readiness probe: has discovery produced any handlers?"""
    handlers = len(analyzer.get_all_handlers())
    structs = len(analyzer.get_all_structs())
    if handlers:
        return ReadinessResponse(status="ok", handlers=handlers, structs=structs)
    response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status="empty", handlers=handlers, structs=structs)
