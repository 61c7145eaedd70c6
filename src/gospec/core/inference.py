"""Static shape inference for Go expressions.

Two questions are answered here. ``infer_type_name`` guesses the Go type an
expression evaluates to, using the variables bound so far in a function body.
``infer_schema`` guesses the JSON shape the expression serializes to, by
running an ordered list of strategies where the first one that recognizes the
expression wins. Neither ever raises; an expression nothing recognizes is
described as a plain string.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from tree_sitter import Node

from gospec.core.parsing import node_text, string_literal_value, unwrap_element
from gospec.core.registry import TypeRegistry
from gospec.core.typenames import (
    ANY_TYPES,
    element_type,
    is_collection,
    is_map,
    is_primitive,
    self_describing_type,
    split_map_type,
    type_expr_to_string,
)
from gospec.models import HandlerDescriptor, SchemaNode

if TYPE_CHECKING:
    from gospec.core.functions import FunctionReturnTable

logger = logging.getLogger(__name__)

Strategy = Callable[[Node, HandlerDescriptor, frozenset[str]], SchemaNode | None]

ACCESSOR_TYPES: dict[str, str] = {
    "GetString": "string",
    "GetInt": "int",
    "GetFloat": "float64",
    "GetBool": "bool",
    "GetDateTime": "types.DateTime",
    "GetStringSlice": "[]string",
    "FindRecordById": "Record",
    "FindFirstRecordByData": "Record",
    "FindFirstRecordByFilter": "Record",
    "FindAuthRecordByEmail": "Record",
    "FindAuthRecordByToken": "Record",
    "FindRecordsByFilter": "[]Record",
    "FindRecordsByIds": "[]Record",
    "FindAllRecords": "[]Record",
    "FindCollectionByNameOrId": "Collection",
    "Now": "time.Time",
}

COUNT_CALLS = frozenset({"len", "cap", "Count", "CountRecords", "Len"})

STRING_CALLS = frozenset(
    {
        "Sprintf",
        "Sprint",
        "Itoa",
        "FormatInt",
        "FormatFloat",
        "FormatBool",
        "Join",
        "ToLower",
        "ToUpper",
        "TrimSpace",
        "Trim",
        "Replace",
        "ReplaceAll",
        "String",
        "Error",
        "Hostname",
        "Getenv",
    }
)

TIME_FORMAT_CALLS = frozenset({"Format", "UTC", "Local", "Add", "Truncate"})
TIME_TYPES = frozenset({"time.Time", "types.DateTime"})

COMPARISON_OPERATORS = frozenset({"==", "!=", "<", "<=", ">", ">=", "&&", "||"})

_BOOLEAN_PREFIXES = ("Is", "Has", "Can", "Should", "Enabled", "Verified", "Active")
_TIME_SUFFIXES = ("At", "Time", "Date", "Created", "Updated")
_COUNT_NAMES = ("Count", "Total", "Len", "Size")


def call_name(call: Node) -> str:
    """Name of the called function: ``foo`` for ``foo()``, ``Bar`` for ``x.y.Bar()``."""
    function = unwrap_element(call.child_by_field_name("function"))
    if function is None:
        return ""
    if function.type == "selector_expression":
        return node_text(function.child_by_field_name("field"))
    if function.type == "index_expression":
        return node_text(function.child_by_field_name("operand"))
    return node_text(function)


def call_arguments(call: Node) -> list[Node]:
    arguments = call.child_by_field_name("arguments")
    if arguments is None:
        return []
    return [child for child in arguments.named_children if child.type != "comment"]


def _parse_int(text: str) -> int | None:
    try:
        return int(text.replace("_", ""), 0)
    except ValueError:
        return None


def _parse_float(text: str) -> float | None:
    try:
        return float(text.replace("_", ""))
    except ValueError:
        return None


def _bare_field_heuristic(field_name: str) -> SchemaNode | None:
    if field_name in ("Id", "ID") or field_name.endswith(("Id", "ID")):
        return SchemaNode.string()
    if field_name.endswith(_TIME_SUFFIXES):
        return SchemaNode.date_time()
    if field_name.startswith("Num") or field_name.endswith(_COUNT_NAMES):
        return SchemaNode.primitive("integer")
    if field_name.startswith(_BOOLEAN_PREFIXES):
        return SchemaNode.primitive("boolean")
    return None


class InferenceEngine:
    def __init__(self, registry: TypeRegistry, functions: FunctionReturnTable | None = None) -> None:
        self.registry = registry
        self.functions = functions
        self._strategies: list[Strategy] = [
            self._from_scalar_literal,
            self._from_composite_literal,
            self._from_unary,
            self._from_type_assertion,
            self._from_identifier,
            self._from_call,
            self._from_index,
            self._from_selector,
            self._from_binary,
            self._from_struct_type,
        ]

    # ------------------------------------------------------------------
    # Type names

    def infer_type_name(self, expr: Node | None, bindings: dict[str, str]) -> str:
        expr = unwrap_element(expr)
        if expr is None:
            return ""

        match expr.type:
            case "composite_literal":
                return type_expr_to_string(expr.child_by_field_name("type"))
            case "unary_expression":
                operator = node_text(expr.child_by_field_name("operator"))
                operand_type = self.infer_type_name(expr.child_by_field_name("operand"), bindings)
                if operator == "*":
                    return operand_type.removeprefix("*")
                if operator == "!":
                    return "bool"
                return operand_type
            case "identifier":
                name = node_text(expr)
                if bindings.get(name):
                    return bindings[name]
                if self.registry.get(name) is not None:
                    return name
                return self_describing_type(name) or ""
            case "call_expression":
                return self._call_type_name(expr, bindings)
            case "selector_expression":
                operand_type = self.infer_type_name(expr.child_by_field_name("operand"), bindings)
                if not operand_type:
                    return ""
                field = self.registry.find_field(operand_type.lstrip("*"), node_text(expr.child_by_field_name("field")))
                return field.declared_type if field is not None else ""
            case "index_expression":
                operand_type = self.infer_type_name(expr.child_by_field_name("operand"), bindings)
                return element_type(operand_type) or "any"
            case "slice_expression":
                operand_type = self.infer_type_name(expr.child_by_field_name("operand"), bindings)
                return operand_type if is_collection(operand_type.lstrip("*")) else "[]any"
            case "type_assertion_expression" | "type_conversion_expression":
                return type_expr_to_string(expr.child_by_field_name("type"))
            case "interpreted_string_literal" | "raw_string_literal" | "rune_literal":
                return "string"
            case "int_literal":
                return "int"
            case "float_literal":
                return "float64"
            case "true" | "false":
                return "bool"
            case "struct_type":
                return "struct{}"
            case _:
                return ""

    def _call_type_name(self, call: Node, bindings: dict[str, str]) -> str:
        name = call_name(call)
        arguments = call_arguments(call)

        if name in ("make", "new") and arguments:
            type_name = type_expr_to_string(arguments[0])
            return "*" + type_name if name == "new" else type_name
        if name in COUNT_CALLS:
            return "int"
        if name == "append" and arguments:
            return self.infer_type_name(arguments[0], bindings)
        if name in TIME_FORMAT_CALLS and name != "Format":
            function = unwrap_element(call.child_by_field_name("function"))
            if function is not None and function.type == "selector_expression":
                receiver_type = self.infer_type_name(function.child_by_field_name("operand"), bindings)
                if receiver_type.lstrip("*") in TIME_TYPES:
                    return receiver_type.lstrip("*")

        type_arguments = call.child_by_field_name("type_arguments")
        if type_arguments is not None and type_arguments.named_children:
            return type_expr_to_string(type_arguments.named_children[0])
        function = unwrap_element(call.child_by_field_name("function"))
        if function is not None and function.type == "index_expression":
            return type_expr_to_string(function.child_by_field_name("index"))

        if is_primitive(name):
            return name
        if self.functions is not None:
            returned = self.functions.return_type(name)
            if returned:
                return returned
        if name in ACCESSOR_TYPES:
            return ACCESSOR_TYPES[name]
        if name.startswith("New") and len(name) > 3 and name[3].isupper():
            return name[3:]
        return ""

    # ------------------------------------------------------------------
    # Schemas

    def infer_schema(self, expr: Node | None, handler: HandlerDescriptor) -> SchemaNode:
        node = self.try_infer(expr, handler)
        return node if node is not None else SchemaNode.string()

    def try_infer(self, expr: Node | None, handler: HandlerDescriptor, seen: frozenset[str] = frozenset()) -> SchemaNode | None:
        """Run the strategies in order; None when none of them recognizes ``expr``."""
        expr = unwrap_element(expr)
        if expr is None:
            return None
        for strategy in self._strategies:
            node = strategy(expr, handler, seen)
            if node is not None:
                return node
        return None

    def schema_for_type_name(self, type_name: str) -> SchemaNode | None:
        if not type_name:
            return None
        if type_name in ANY_TYPES:
            return SchemaNode.open_object()
        return self.registry.synthesizer.type_to_schema(type_name)

    def literal_shape(self, expr: Node | None, handler: HandlerDescriptor, seen: frozenset[str] = frozenset()) -> SchemaNode | None:
        """Shape of a composite literal; None for any other expression."""
        expr = unwrap_element(expr)
        if expr is None or expr.type != "composite_literal":
            return None
        type_node = unwrap_element(expr.child_by_field_name("type"))
        body = expr.child_by_field_name("body")
        type_name = type_expr_to_string(type_node)

        if type_node is not None and type_node.type == "struct_type":
            return self.registry.synthesizer.anonymous_struct_schema(type_node)

        canonical, _ = self.registry.resolve_alias(type_name)
        if is_map(canonical):
            parts = split_map_type(canonical)
            return self._map_literal_shape(body, parts[1] if parts else "", handler, seen)
        if is_collection(canonical):
            return self._slice_literal_shape(body, element_type(canonical) or "", handler, seen)

        return self.registry.synthesizer.type_to_schema(type_name)

    def _elements(self, body: Node | None) -> list[Node]:
        if body is None:
            return []
        return [child for child in body.named_children if child.type != "comment"]

    def _element_schema(self, value: Node | None, value_type: str, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode:
        value = unwrap_element(value)
        if value is not None and value.type == "literal_value":
            # Elided element type: {...} inside []T{...} or map[K]T{...}
            canonical, _ = self.registry.resolve_alias(value_type)
            if is_map(canonical):
                parts = split_map_type(canonical)
                return self._map_literal_shape(value, parts[1] if parts else "", handler, seen)
            if is_collection(canonical):
                return self._slice_literal_shape(value, element_type(canonical) or "", handler, seen)
            node = self.schema_for_type_name(value_type)
        else:
            node = self.try_infer(value, handler, seen)
        return node if node is not None else SchemaNode.string()

    def _map_literal_shape(self, body: Node | None, value_type: str, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode:
        elements = self._elements(body)
        if not elements:
            if not value_type or value_type in ANY_TYPES:
                return SchemaNode.open_object()
            return SchemaNode(type="object", additional_properties=self.schema_for_type_name(value_type))

        properties: dict[str, SchemaNode] = {}
        for element in elements:
            if element.type != "keyed_element":
                continue
            children = element.named_children
            if len(children) < 2:
                continue
            key = string_literal_value(unwrap_element(children[0]))
            if key is None:
                continue
            properties[key] = self._element_schema(children[1], value_type, handler, seen)
        return SchemaNode.object(properties, list(properties))

    def _slice_literal_shape(self, body: Node | None, item_type: str, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode:
        elements = self._elements(body)
        if elements:
            first = elements[0]
            if first.type == "keyed_element":
                first = first.named_children[-1]
            return SchemaNode.array(self._element_schema(first, item_type, handler, seen))
        items = self.schema_for_type_name(item_type)
        return SchemaNode.array(items if items is not None else SchemaNode.open_object())

    # Strategies, in the order they are tried.

    def _from_scalar_literal(self, expr: Node, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode | None:
        match expr.type:
            case "interpreted_string_literal" | "raw_string_literal":
                return SchemaNode.string(example=string_literal_value(expr))
            case "rune_literal":
                return SchemaNode.string()
            case "int_literal":
                return SchemaNode.primitive("integer", example=_parse_int(node_text(expr)))
            case "float_literal":
                return SchemaNode.primitive("number", example=_parse_float(node_text(expr)))
            case "true" | "false":
                return SchemaNode.primitive("boolean", example=expr.type == "true")
            case "nil":
                node = SchemaNode.open_object()
                node.nullable = True
                return node
            case _:
                return None

    def _from_composite_literal(self, expr: Node, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode | None:
        return self.literal_shape(expr, handler, seen)

    def _from_unary(self, expr: Node, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode | None:
        if expr.type != "unary_expression":
            return None
        operator = node_text(expr.child_by_field_name("operator"))
        if operator == "!":
            return SchemaNode.primitive("boolean")
        if operator == "<-":
            return None
        return self.try_infer(expr.child_by_field_name("operand"), handler, seen)

    def _from_type_assertion(self, expr: Node, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode | None:
        if expr.type not in ("type_assertion_expression", "type_conversion_expression"):
            return None
        return self.schema_for_type_name(type_expr_to_string(expr.child_by_field_name("type")))

    def _from_identifier(self, expr: Node, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode | None:
        if expr.type != "identifier":
            return None
        name = node_text(expr)
        node: SchemaNode | None = None

        origin = handler.variable_origins.get(name)
        if origin is not None and name not in seen:
            origin = unwrap_element(origin)
            if origin is not None and origin.type == "unary_expression" and node_text(origin.child_by_field_name("operator")) == "&":
                origin = origin.child_by_field_name("operand")
            node = self.try_infer(origin, handler, seen | {name})

        if node is None:
            node = self.schema_for_type_name(self.infer_type_name(expr, handler.variables))
        if node is None:
            return None

        mutations = handler.map_mutations.get(name)
        if mutations and node.is_object:
            node = node.clone()
            if node.properties is None:
                node.properties = {}
            for mutation in mutations:
                if mutation.key in node.properties:
                    continue
                value = self.try_infer(mutation.value, handler, seen | {name})
                node.properties[mutation.key] = value if value is not None else SchemaNode.string()
            if node.additional_properties is True:
                node.additional_properties = None

        appended = handler.appended_elements.get(name)
        if appended is not None and node.type == "array" and (node.items is None or node.items.is_open):
            items = self.try_infer(appended, handler, seen | {name})
            if items is not None:
                node = node.clone()
                node.items = items
        return node

    def _from_call(self, expr: Node, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode | None:
        if expr.type != "call_expression":
            return None
        name = call_name(expr)
        arguments = call_arguments(expr)

        if name in COUNT_CALLS:
            node = SchemaNode.primitive("integer")
            node.minimum = 0
            return node
        if self._is_time_call(expr, name, handler):
            return SchemaNode.date_time()
        if name in ("GetString", "GetInt", "GetFloat", "GetBool", "GetDateTime"):
            return self.schema_for_type_name(ACCESSOR_TYPES[name])
        if name in STRING_CALLS:
            return SchemaNode.string()
        if name in ("Unix", "UnixMilli", "UnixNano"):
            return SchemaNode.primitive("integer", "int64")
        if name in ("make", "new") and arguments:
            return self.schema_for_type_name(type_expr_to_string(arguments[0]))
        if name == "append" and arguments:
            return self.try_infer(arguments[0], handler, seen)

        if self.functions is not None:
            deep = self.functions.deep_schema(name)
            if deep is not None:
                return deep
            returned = self.functions.return_type(name)
            if returned:
                return self.schema_for_type_name(returned)

        return self.schema_for_type_name(self._call_type_name(expr, handler.variables))

    def _is_time_call(self, call: Node, name: str, handler: HandlerDescriptor) -> bool:
        """``time.Now()``, ``types.NowDateTime()``, ``record.GetTime(..)`` and methods on time values."""
        if name == "Now":
            return True
        function = unwrap_element(call.child_by_field_name("function"))
        if function is None or function.type != "selector_expression":
            return False
        if "Time" in name:
            return True
        if name not in TIME_FORMAT_CALLS:
            return False
        receiver = unwrap_element(function.child_by_field_name("operand"))
        receiver_type = self.infer_type_name(receiver, handler.variables)
        if receiver_type:
            return receiver_type.lstrip("*") in TIME_TYPES
        # Untyped receivers fall back to their name: createdAt.Add(..) but not counter.Add(..).
        if receiver is not None and receiver.type == "selector_expression":
            receiver = receiver.child_by_field_name("field")
        if receiver is None or receiver.type not in ("identifier", "field_identifier"):
            return False
        described = _bare_field_heuristic(node_text(receiver)[:1].upper() + node_text(receiver)[1:])
        return described is not None and described.format == "date-time"

    def _from_index(self, expr: Node, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode | None:
        if expr.type != "index_expression":
            return None
        operand = expr.child_by_field_name("operand")
        key = string_literal_value(unwrap_element(expr.child_by_field_name("index")))
        container = self.try_infer(operand, handler, seen)

        if container is not None:
            if key is not None and container.properties and key in container.properties:
                return container.properties[key].clone()
            if container.type == "array" and container.items is not None:
                return container.items.clone()
            if isinstance(container.additional_properties, SchemaNode):
                return container.additional_properties.clone()

        value_type = element_type(self.infer_type_name(operand, handler.variables))
        if value_type:
            return self.schema_for_type_name(value_type)
        return None

    def _from_selector(self, expr: Node, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode | None:
        if expr.type != "selector_expression":
            return None
        field_name = node_text(expr.child_by_field_name("field"))
        operand_type = self.infer_type_name(expr.child_by_field_name("operand"), handler.variables)
        if operand_type:
            field = self.registry.find_field(operand_type.lstrip("*"), field_name)
            if field is not None:
                return self.registry.synthesizer.field_schema(field)
        return _bare_field_heuristic(field_name)

    def _from_binary(self, expr: Node, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode | None:
        if expr.type != "binary_expression":
            return None
        operator = node_text(expr.child_by_field_name("operator"))
        if operator in COMPARISON_OPERATORS:
            return SchemaNode.primitive("boolean")
        return self.try_infer(expr.child_by_field_name("left"), handler, seen)

    def _from_struct_type(self, expr: Node, handler: HandlerDescriptor, seen: frozenset[str]) -> SchemaNode | None:
        if expr.type != "struct_type":
            return None
        return self.registry.synthesizer.anonymous_struct_schema(expr)
