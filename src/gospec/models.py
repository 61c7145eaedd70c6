from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from tree_sitter import Node

SchemaType = Literal["string", "integer", "number", "boolean", "object", "array"]

REF_PREFIX = "#/components/schemas/"


class SchemaNode(BaseModel):
    """JSON-Schema-like description of a value's shape.

    A node is one of four kinds: a primitive (``type`` is a scalar), an object,
    an array, or a reference to a named type (``ref`` is set, ``type`` is not).
    Nodes handed out by caches must be cloned before they are mutated.
    """

    type: SchemaType | None = None
    format: str | None = None
    example: Any = None
    properties: dict[str, SchemaNode] | None = None
    required: list[str] = Field(default_factory=list)
    additional_properties: bool | SchemaNode | None = None
    items: SchemaNode | None = None
    ref: str | None = None
    nullable: bool = False
    minimum: int | float | None = None
    maximum: int | float | None = None
    min_length: int | None = None
    max_length: int | None = None
    description: str | None = None

    @classmethod
    def primitive(cls, type_: SchemaType, format: str | None = None, example: Any = None) -> SchemaNode:
        return cls(type=type_, format=format, example=example)

    @classmethod
    def string(cls, format: str | None = None, example: Any = None) -> SchemaNode:
        return cls(type="string", format=format, example=example)

    @classmethod
    def date_time(cls) -> SchemaNode:
        return cls(type="string", format="date-time")

    @classmethod
    def object(
        cls,
        properties: dict[str, SchemaNode] | None = None,
        required: list[str] | None = None,
        additional_properties: bool | SchemaNode | None = None,
    ) -> SchemaNode:
        return cls(
            type="object",
            properties=properties if properties is not None else {},
            required=required or [],
            additional_properties=additional_properties,
        )

    @classmethod
    def open_object(cls) -> SchemaNode:
        return cls(type="object", additional_properties=True)

    @classmethod
    def array(cls, items: SchemaNode) -> SchemaNode:
        return cls(type="array", items=items)

    @classmethod
    def reference(cls, name: str) -> SchemaNode:
        return cls(ref=name)

    @property
    def kind(self) -> str:
        if self.ref is not None:
            return "reference"
        if self.type == "object":
            return "object"
        if self.type == "array":
            return "array"
        return "primitive"

    @property
    def is_reference(self) -> bool:
        return self.ref is not None

    @property
    def is_object(self) -> bool:
        return self.ref is None and self.type == "object"

    @property
    def is_open(self) -> bool:
        """True for a free-form object with no known properties."""
        return self.is_object and not self.properties and self.additional_properties is True

    def clone(self) -> SchemaNode:
        return self.model_copy(deep=True)

    def to_openapi(self, ref_prefix: str = REF_PREFIX) -> dict[str, Any]:
        if self.ref is not None:
            return {"$ref": f"{ref_prefix}{self.ref}"}

        out: dict[str, Any] = {}
        if self.type is not None:
            out["type"] = self.type
        if self.format:
            out["format"] = self.format
        if self.description:
            out["description"] = self.description
        if self.properties is not None:
            out["properties"] = {name: prop.to_openapi(ref_prefix) for name, prop in self.properties.items()}
        if self.required:
            out["required"] = list(self.required)
        if isinstance(self.additional_properties, SchemaNode):
            out["additionalProperties"] = self.additional_properties.to_openapi(ref_prefix)
        elif self.additional_properties is not None:
            out["additionalProperties"] = self.additional_properties
        if self.items is not None:
            out["items"] = self.items.to_openapi(ref_prefix)
        if self.nullable:
            out["nullable"] = True
        if self.example is not None:
            out["example"] = self.example
        for key, value in (
            ("minimum", self.minimum),
            ("maximum", self.maximum),
            ("minLength", self.min_length),
            ("maxLength", self.max_length),
        ):
            if value is not None:
                out[key] = value
        return out


SchemaNode.model_rebuild()  # necessary for recursive types


class FieldDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    declared_type: str
    serialized_name: str
    omit_when_empty: bool = False
    is_pointer: bool = False
    required: bool = False
    validation: dict[str, str] = Field(default_factory=dict)
    description: str = ""

    @property
    def is_exported(self) -> bool:
        return bool(self.name) and self.name[0].isupper()


class TypeDescriptor(BaseModel):
    name: str
    package: str = ""
    fields: dict[str, FieldDescriptor] = Field(default_factory=dict)
    embedded: list[str] = Field(default_factory=list)
    description: str = ""
    source_file: str = ""
    json_schema: SchemaNode | None = None


class ParseError(BaseModel):
    file: str
    message: str
    kind: Literal["syntax", "io"] = "syntax"
    line: int | None = None
    column: int | None = None

    def __str__(self) -> str:
        if self.line is not None:
            return f"{self.file}:{self.line}:{self.column or 0}: {self.kind}: {self.message}"
        return f"{self.file}: {self.kind}: {self.message}"


class MapMutation(BaseModel):
    """A dynamic ``v["key"] = value`` assignment observed in a function body."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    value: Node = Field(exclude=True)


class ParamDescriptor(BaseModel):
    name: str
    source: Literal["query", "path", "header"] = "query"
    required: bool = False
    type: str = "string"


class AuthInfo(BaseModel):
    required: bool = False
    type: str = ""
    collections: list[str] = Field(default_factory=list)
    owner_param: str = ""
    description: str = ""


class HandlerDescriptor(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    package: str = ""
    receiver: str = ""
    description: str = ""
    summary: str = ""
    tags: list[str] = Field(default_factory=list)
    source_file: str = ""
    line: int = 0

    variables: dict[str, str] = Field(default_factory=dict)
    variable_origins: dict[str, Node] = Field(default_factory=dict, exclude=True)
    map_mutations: dict[str, list[MapMutation]] = Field(default_factory=dict)
    appended_elements: dict[str, Node] = Field(default_factory=dict, exclude=True)

    request_type: str = ""
    request_schema: SchemaNode | None = None
    response_type: str = ""
    response_schema: SchemaNode | None = None
    response_status: int | None = None
    error_responses: dict[str, SchemaNode] = Field(default_factory=dict)

    auth_required: bool = False
    auth_category: str = ""
    auth_collections: list[str] = Field(default_factory=list)
    owner_param: str = ""

    data_operations: list[str] = Field(default_factory=list)
    declared_parameters: list[ParamDescriptor] = Field(default_factory=list)
    uses_bind_body: bool = False
    uses_json_return: bool = False
    enhanced: bool = False

    def snapshot(self) -> HandlerDescriptor:
        """Return a copy that shares no mutable containers or schemas with this one."""
        return self.model_copy(
            update={
                "tags": list(self.tags),
                "variables": dict(self.variables),
                "variable_origins": dict(self.variable_origins),
                "map_mutations": {name: list(items) for name, items in self.map_mutations.items()},
                "appended_elements": dict(self.appended_elements),
                "request_schema": self.request_schema.clone() if self.request_schema else None,
                "response_schema": self.response_schema.clone() if self.response_schema else None,
                "error_responses": {status: node.clone() for status, node in self.error_responses.items()},
                "auth_collections": list(self.auth_collections),
                "data_operations": list(self.data_operations),
                "declared_parameters": [param.model_copy() for param in self.declared_parameters],
            }
        )


class RouteRegistration(BaseModel):
    method: str
    path: str
    handler: str
    auth_category: str = ""
    source_file: str = ""


class EndpointDescriptor(BaseModel):
    method: str
    path: str
    handler: str = ""
    description: str = ""
    tags: list[str] = Field(default_factory=list)
    auth: AuthInfo | None = None
    request: SchemaNode | None = None
    response: SchemaNode | None = None
    parameters: list[ParamDescriptor] = Field(default_factory=list)


class EnhanceOutcome(str, Enum):
    MATCHED = "matched"
    MATCHED_WITHOUT_SCHEMA = "matched_without_schema"
    UNMATCHED = "unmatched"
