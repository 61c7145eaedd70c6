from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from gospec.models import EndpointDescriptor, EnhanceOutcome, HandlerDescriptor, TypeDescriptor


class HealthResponse(BaseModel):
    status: str = "ok"


class ReadinessResponse(BaseModel):
    status: str = "ok"
    handlers: int = 0
    structs: int = 0


class StructSummary(BaseModel):
    name: str
    package: str
    field_count: int
    source_file: str


class HandlerSummary(BaseModel):
    name: str
    source_file: str
    line: int
    request_type: str
    response_type: str
    auth_category: str
    data_operations: list[str]


class EnhanceRequest(BaseModel):
    """An endpoint as the live route table describes it."""

    method: str
    path: str
    handler: str
    description: str = ""
    tags: list[str] = Field(default_factory=list)


class EnhanceResponse(BaseModel):
    outcome: EnhanceOutcome
    endpoint: dict[str, Any]


class ReloadRequest(BaseModel):
    root: str | None = None


class ReloadResponse(BaseModel):
    handlers: int
    structs: int
    parse_errors: int


def struct_summary(struct: TypeDescriptor) -> StructSummary:
    return StructSummary(
        name=struct.name,
        package=struct.package,
        field_count=len(struct.fields),
        source_file=struct.source_file,
    )


def struct_detail(struct: TypeDescriptor) -> dict[str, Any]:
    body = struct.model_dump(exclude={"json_schema"})
    body["schema"] = struct.json_schema.to_openapi() if struct.json_schema else None
    return body


def handler_summary(handler: HandlerDescriptor) -> HandlerSummary:
    return HandlerSummary(
        name=handler.name,
        source_file=handler.source_file,
        line=handler.line,
        request_type=handler.request_type,
        response_type=handler.response_type,
        auth_category=handler.auth_category,
        data_operations=list(handler.data_operations),
    )


def handler_detail(handler: HandlerDescriptor) -> dict[str, Any]:
    body = handler.model_dump(exclude={"request_schema", "response_schema", "error_responses", "map_mutations"})
    body["request_schema"] = handler.request_schema.to_openapi() if handler.request_schema else None
    body["response_schema"] = handler.response_schema.to_openapi() if handler.response_schema else None
    body["error_responses"] = {status: node.to_openapi() for status, node in handler.error_responses.items()}
    body["map_mutations"] = {name: [m.key for m in mutations] for name, mutations in handler.map_mutations.items()}
    return body


def endpoint_detail(endpoint: EndpointDescriptor) -> dict[str, Any]:
    body = endpoint.model_dump(exclude={"request", "response"})
    body["request"] = endpoint.request.to_openapi() if endpoint.request else None
    body["response"] = endpoint.response.to_openapi() if endpoint.response else None
    return body
