"""Tests for endpoint enhancement from analyzed handlers."""

from __future__ import annotations

import pytest

from gospec.core.enhance import enhance_endpoint, handler_name_candidates, normalize_handler_reference
from gospec.models import (
    EndpointDescriptor,
    EnhanceOutcome,
    HandlerDescriptor,
    ParamDescriptor,
    SchemaNode,
)


@pytest.fixture
def handlers() -> dict[str, HandlerDescriptor]:
    return {
        "listUsers": HandlerDescriptor(
            name="listUsers",
            description="List users",
            tags=["Users"],
            auth_required=True,
            auth_category="auth",
            auth_collections=["users"],
            response_schema=SchemaNode.array(SchemaNode.reference("User")),
            declared_parameters=[ParamDescriptor(name="page"), ParamDescriptor(name="id", source="path", required=True)],
        ),
        "API.Health": HandlerDescriptor(name="API.Health", summary="Health probe."),
    }


class TestHandlerNames:
    def test_normalize_method_value(self) -> None:
        assert normalize_handler_reference("github.com/me/app/handlers.(*API).List-fm") == "handlers.API.List"

    def test_candidates_strip_package_then_suffix(self) -> None:
        assert handler_name_candidates("apis.ListUsersHandler") == [
            "apis.ListUsersHandler",
            "ListUsersHandler",
            "apis.ListUsers",
            "ListUsers",
        ]

    def test_candidates_for_method_value(self) -> None:
        assert handler_name_candidates("github.com/me/app/handlers.(*API).List-fm") == [
            "handlers.API.List",
            "API.List",
            "List",
        ]

    def test_bare_suffix_is_kept(self) -> None:
        assert handler_name_candidates("Handler") == ["Handler"]

    def test_empty(self) -> None:
        assert handler_name_candidates("") == []


class TestEnhanceEndpoint:
    def test_matched_fills_endpoint(self, handlers: dict[str, HandlerDescriptor]) -> None:
        endpoint = EndpointDescriptor(
            method="GET",
            path="/api/users/{id}",
            handler="main.listUsersHandler",
            parameters=[ParamDescriptor(name="id", source="path", required=True)],
        )
        assert enhance_endpoint(endpoint, handlers) is EnhanceOutcome.MATCHED
        assert endpoint.description == "List users"
        assert endpoint.tags == ["Users"]
        assert endpoint.auth is not None
        assert endpoint.auth.type == "auth"
        assert endpoint.auth.collections == ["users"]
        assert [p.name for p in endpoint.parameters] == ["id", "page"]
        assert endpoint.response is not None
        assert endpoint.response.items is not None and endpoint.response.items.ref == "User"
        assert handlers["listUsers"].enhanced

    def test_schemas_are_copies(self, handlers: dict[str, HandlerDescriptor]) -> None:
        endpoint = EndpointDescriptor(method="GET", path="/api/users", handler="listUsers")
        enhance_endpoint(endpoint, handlers)
        assert endpoint.response is not None
        endpoint.response.items = None
        assert handlers["listUsers"].response_schema is not None
        assert handlers["listUsers"].response_schema.items is not None

    def test_matched_without_schema(self, handlers: dict[str, HandlerDescriptor]) -> None:
        endpoint = EndpointDescriptor(method="GET", path="/health", handler="handlers.(*API).Health-fm")
        assert enhance_endpoint(endpoint, handlers) is EnhanceOutcome.MATCHED_WITHOUT_SCHEMA
        assert endpoint.description == "Health probe."
        assert endpoint.auth is None

    def test_existing_description_beats_summary(self, handlers: dict[str, HandlerDescriptor]) -> None:
        endpoint = EndpointDescriptor(method="GET", path="/health", handler="API.Health", description="Liveness")
        enhance_endpoint(endpoint, handlers)
        assert endpoint.description == "Liveness"

    def test_unmatched_leaves_endpoint_alone(self, handlers: dict[str, HandlerDescriptor]) -> None:
        endpoint = EndpointDescriptor(method="POST", path="/x", handler="main.somethingElse")
        assert enhance_endpoint(endpoint, handlers) is EnhanceOutcome.UNMATCHED
        assert endpoint == EndpointDescriptor(method="POST", path="/x", handler="main.somethingElse")

    def test_anonymous_reference_is_not_matched(self, handlers: dict[str, HandlerDescriptor]) -> None:
        endpoint = EndpointDescriptor(method="GET", path="/api/users", handler="main.main.func1")
        assert enhance_endpoint(endpoint, handlers) is EnhanceOutcome.UNMATCHED
        assert endpoint.response is None
        assert handlers["listUsers"].enhanced is False
