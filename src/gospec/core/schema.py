"""Conversion of Go type descriptors and struct declarations into schema nodes."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tree_sitter import Node

from gospec.core.typenames import (
    ANY_TYPES,
    BOOLEAN_TYPES,
    FLOAT_FORMATS,
    INTEGER_FORMATS,
    STRING_FORMATS,
    clean_type_name,
    element_type,
    is_collection,
    is_map,
    is_pointer,
    split_map_type,
    strip_namespace,
)
from gospec.models import FieldDescriptor, SchemaNode, TypeDescriptor

if TYPE_CHECKING:
    from gospec.core.registry import TypeRegistry


def primitive_schema(type_name: str) -> SchemaNode | None:
    if type_name in INTEGER_FORMATS:
        return SchemaNode.primitive("integer", INTEGER_FORMATS[type_name])
    if type_name in FLOAT_FORMATS:
        return SchemaNode.primitive("number", FLOAT_FORMATS[type_name])
    if type_name in STRING_FORMATS:
        return SchemaNode.string(STRING_FORMATS[type_name])
    if type_name in BOOLEAN_TYPES:
        return SchemaNode.primitive("boolean")
    return None


def _is_free_form(type_name: str) -> bool:
    return type_name in ANY_TYPES or type_name.startswith(("struct{", "chan ", "func", "interface{"))


def _apply_validation(node: SchemaNode, field: FieldDescriptor) -> None:
    numeric = node.type in ("integer", "number")
    for rule, value in field.validation.items():
        try:
            bound = int(value)
        except ValueError:
            continue
        if rule == "min":
            if numeric:
                node.minimum = bound
            elif node.type == "string":
                node.min_length = bound
        elif rule == "max":
            if numeric:
                node.maximum = bound
            elif node.type == "string":
                node.max_length = bound
        elif rule == "len" and node.type == "string":
            node.min_length = bound
            node.max_length = bound


class SchemaSynthesizer:
    """Turns type names into schema nodes using the registry's type universe.

    Struct names resolve to reference nodes unless an inline copy is asked
    for, which keeps mutually recursive struct graphs finite. Nothing here
    raises: an unknown name becomes a bare reference.
    """

    def __init__(self, registry: TypeRegistry) -> None:
        self._registry = registry

    def type_to_schema(self, type_name: str, inline: bool = False) -> SchemaNode:
        return self._type_to_schema(type_name.strip(), inline, set())

    def _type_to_schema(self, type_name: str, inline: bool, visited: set[str]) -> SchemaNode:
        if not type_name:
            return SchemaNode.open_object()

        if type_name == "[]byte":
            return SchemaNode.string(format="byte")

        if is_collection(type_name):
            return SchemaNode.array(self._type_to_schema(element_type(type_name) or "", inline, visited))

        if is_map(type_name):
            parts = split_map_type(type_name)
            value_type = parts[1] if parts else ""
            if not value_type or _is_free_form(value_type):
                return SchemaNode.open_object()
            return SchemaNode(
                type="object",
                additional_properties=self._type_to_schema(value_type, False, visited),
            )

        if is_pointer(type_name):
            node = self._type_to_schema(type_name[1:], inline, visited)
            if not node.is_reference:
                node.nullable = True
            return node

        primitive = primitive_schema(type_name)
        if primitive is not None:
            return primitive

        if _is_free_form(type_name):
            return SchemaNode.open_object()

        if type_name in visited:
            return SchemaNode.reference(strip_namespace(type_name))
        visited.add(type_name)

        canonical, _ = self._registry.resolve_alias(type_name)
        if canonical != type_name:
            return self._type_to_schema(canonical, inline, visited)

        if self._registry.get(canonical) is not None:
            if inline:
                cached = self._registry.schema_for(canonical)
                if cached is not None:
                    return cached.clone()
            return SchemaNode.reference(canonical)

        return SchemaNode.reference(clean_type_name(canonical))

    def field_schema(self, field: FieldDescriptor) -> SchemaNode:
        node = self.type_to_schema(field.declared_type, inline=False)
        if node.is_reference:
            return node
        if field.is_pointer:
            node.nullable = True
        if field.description:
            node.description = field.description
        _apply_validation(node, field)
        return node

    def struct_to_schema(self, descriptor: TypeDescriptor) -> SchemaNode:
        properties, required = self._flatten(descriptor, {descriptor.name})
        node = SchemaNode.object(properties, required)
        if descriptor.description:
            node.description = descriptor.description
        return node

    def _flatten(self, descriptor: TypeDescriptor, visited: set[str]) -> tuple[dict[str, SchemaNode], list[str]]:
        properties: dict[str, SchemaNode] = {}
        required: list[str] = []

        for embedded_name in descriptor.embedded:
            embedded = self._registry.struct_for(embedded_name)
            if embedded is None or embedded.name in visited:
                continue
            promoted, promoted_required = self._flatten(embedded, visited | {embedded.name})
            for name, node in promoted.items():
                if name in properties:
                    continue
                properties[name] = node
                if name in promoted_required:
                    required.append(name)

        for field in descriptor.fields.values():
            if not field.is_exported or field.serialized_name == "-":
                continue
            key = field.serialized_name
            properties[key] = self.field_schema(field)
            if key in required:
                required.remove(key)
            if field.required or not (field.omit_when_empty or field.is_pointer):
                required.append(key)

        return properties, required

    def anonymous_struct_schema(self, struct_type: Node) -> SchemaNode:
        """Inline object for an anonymous ``struct{...}`` type node."""
        from gospec.core.declarations import parse_field_list

        fields, embedded = parse_field_list(struct_type)
        descriptor = TypeDescriptor(name="", fields=fields, embedded=embedded)
        return self.struct_to_schema(descriptor)
