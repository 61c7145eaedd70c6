from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from tree_sitter import Node

from gospec.core.parsing import node_text
from gospec.core.typenames import ANY_TYPES, is_map, type_expr_to_string
from gospec.models import SchemaNode

if TYPE_CHECKING:
    from gospec.core.handlers import HandlerAnalyzer

logger = logging.getLogger(__name__)


def declared_return_type(function: Node) -> str:
    """First non-error result type of a function or method declaration."""
    result = function.child_by_field_name("result")
    if result is None:
        return ""
    if result.type != "parameter_list":
        type_name = type_expr_to_string(result)
        return "" if type_name == "error" else type_name
    for declaration in result.named_children:
        type_name = type_expr_to_string(declaration.child_by_field_name("type") or declaration)
        if type_name and type_name != "error":
            return type_name
    return ""


def _wants_deep_schema(return_type: str) -> bool:
    canonical = return_type.lstrip("*")
    return canonical in ANY_TYPES or is_map(canonical)


def _returned_expressions(body: Node) -> list[Node]:
    """First value of every return statement, skipping nested function literals."""
    expressions: list[Node] = []
    stack = [body]
    while stack:
        node = stack.pop()
        if node.type == "func_literal":
            continue
        if node.type == "return_statement":
            values = next((child for child in node.named_children if child.type == "expression_list"), None)
            if values is not None and values.named_children:
                expressions.append(values.named_children[0])
            continue
        stack.extend(reversed(node.children))
    expressions.sort(key=lambda n: n.start_byte)
    return expressions


@dataclass
class FunctionReturnTable:
    """Return types of the local helper functions, keyed by function name.

    Helpers that return maps or ``any`` also get a deep schema, built by
    walking their body the same way handler bodies are walked and keeping the
    returned object with the most properties.
    """

    return_types: dict[str, str] = field(default_factory=dict)
    deep_schemas: dict[str, SchemaNode] = field(default_factory=dict)

    def return_type(self, name: str) -> str:
        return self.return_types.get(name, "")

    def deep_schema(self, name: str) -> SchemaNode | None:
        schema = self.deep_schemas.get(name)
        return schema.clone() if schema is not None else None

    def build(self, functions: Iterable[Node], analyzer: HandlerAnalyzer) -> FunctionReturnTable:
        declarations = [function for function in functions if function.child_by_field_name("name") is not None]
        for function in declarations:
            name = node_text(function.child_by_field_name("name"))
            return_type = declared_return_type(function)
            if return_type and name not in self.return_types:
                self.return_types[name] = return_type

        for function in declarations:
            name = node_text(function.child_by_field_name("name"))
            if name in self.deep_schemas or not _wants_deep_schema(self.return_types.get(name, "")):
                continue
            if analyzer.is_handler_function(function):
                continue
            schema = self._deep_schema_of(function, analyzer)
            if schema is not None:
                self.deep_schemas[name] = schema
                logger.debug("Deep schema for helper %s has %s properties", name, len(schema.properties or {}))
        return self

    def _deep_schema_of(self, function: Node, analyzer: HandlerAnalyzer) -> SchemaNode | None:
        body = function.child_by_field_name("body")
        if body is None:
            return None
        bindings = analyzer.bind_function(function)
        best: SchemaNode | None = None
        for expression in _returned_expressions(body):
            candidate = analyzer.engine.try_infer(expression, bindings)
            if candidate is None or not candidate.is_object or not candidate.properties:
                continue
            if best is None or len(candidate.properties) > len(best.properties or {}):
                best = candidate
        return best
