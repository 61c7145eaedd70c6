from typing import Any, Protocol

from gospec.models import EndpointDescriptor, EnhanceOutcome, HandlerDescriptor, ParseError, RouteRegistration, TypeDescriptor


class ApiSchemaSource(Protocol):
    def discover(self, root: str | None = None) -> None: ...

    def parse_file(self, path: str) -> None: ...

    def enhance_endpoint(self, endpoint: EndpointDescriptor) -> EnhanceOutcome: ...

    def get_all_structs(self) -> dict[str, TypeDescriptor]: ...

    def get_all_handlers(self) -> dict[str, HandlerDescriptor]: ...

    def get_struct_by_name(self, name: str) -> TypeDescriptor | None: ...

    def get_handler_by_name(self, name: str) -> HandlerDescriptor | None: ...

    def get_parse_errors(self) -> list[ParseError]: ...

    def route_registrations(self) -> list[RouteRegistration]: ...

    def debug_data(self) -> dict[str, Any]: ...

    def clear_cache(self) -> None: ...
