"""Handler body analysis.

A handler is a function whose only parameter is the framework's request
event. Its body is walked once, in source order, to record variable bindings,
dynamic map keys, request binding, JSON emissions, auth checks, data access
and parameter reads. Emission payloads are resolved only after the walk so
that every binding in the body is visible to inference.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from tree_sitter import Node

from gospec.core.functions import FunctionReturnTable
from gospec.core.inference import InferenceEngine, call_arguments, call_name
from gospec.core.parsing import leading_comments, node_text, string_literal_value, unwrap_element, walk
from gospec.core.registry import TypeRegistry
from gospec.core.typenames import element_type, is_collection, is_map, split_map_type, strip_namespace, type_expr_to_string
from gospec.models import HandlerDescriptor, MapMutation, ParamDescriptor, SchemaNode

logger = logging.getLogger(__name__)

HTTP_STATUS: dict[str, int] = {
    "StatusOK": 200,
    "StatusCreated": 201,
    "StatusAccepted": 202,
    "StatusNoContent": 204,
    "StatusMovedPermanently": 301,
    "StatusFound": 302,
    "StatusNotModified": 304,
    "StatusBadRequest": 400,
    "StatusUnauthorized": 401,
    "StatusForbidden": 403,
    "StatusNotFound": 404,
    "StatusMethodNotAllowed": 405,
    "StatusConflict": 409,
    "StatusGone": 410,
    "StatusUnprocessableEntity": 422,
    "StatusTooManyRequests": 429,
    "StatusInternalServerError": 500,
    "StatusNotImplemented": 501,
    "StatusBadGateway": 502,
    "StatusServiceUnavailable": 503,
}

BIND_CALLS = frozenset({"BindBody", "Bind", "BindJSON", "ShouldBind", "ShouldBindJSON", "BodyParser", "Decode", "Unmarshal"})
EMIT_CALLS = frozenset({"JSON", "IndentedJSON", "WriteJSON", "JSONPretty"})

AUTH_CALLS: dict[str, str] = {
    "RequireGuestOnly": "guest_only",
    "RequireAuth": "auth",
    "RequireSuperuserOrOwnerAuth": "superuser_or_owner",
    "RequireSuperuserAuth": "superuser",
    "HasSuperuserAuth": "superuser",
    "IsSuperuser": "superuser",
}
AUTH_RANK = {"guest_only": 0, "auth": 1, "superuser_or_owner": 2, "superuser": 3}

DATA_RECEIVER = re.compile(r"(?:^|\.)\w*(?:App|app|Dao|dao|db|DB|repo|Repo|store|Store|tx|Tx)$")

DIRECTIVE_DESC = "API_DESC"
DIRECTIVE_TAGS = "API_TAGS"


def decode_status(node: Node | None) -> int | None:
    """``201`` or ``http.StatusCreated`` -> 201; anything else is unknown."""
    node = unwrap_element(node)
    if node is None:
        return None
    if node.type == "int_literal":
        try:
            return int(node_text(node))
        except ValueError:
            return None
    if node.type == "selector_expression":
        return HTTP_STATUS.get(node_text(node.child_by_field_name("field")))
    if node.type == "identifier":
        return HTTP_STATUS.get(node_text(node))
    return None


def raise_auth(handler: HandlerDescriptor, category: str) -> None:
    if AUTH_RANK[category] > AUTH_RANK.get(handler.auth_category, -1):
        handler.auth_category = category
    handler.auth_required = handler.auth_category != "guest_only"


def _string_arguments(call: Node) -> list[str]:
    values = (string_literal_value(unwrap_element(argument)) for argument in call_arguments(call))
    return [value for value in values if value is not None]


def _call_receiver(call: Node) -> Node | None:
    function = unwrap_element(call.child_by_field_name("function"))
    if function is None or function.type != "selector_expression":
        return None
    return function.child_by_field_name("operand")


def _is_query_values(node: Node | None) -> bool:
    """``e.Request.URL.Query()``"""
    node = unwrap_element(node)
    if node is None or node.type != "call_expression" or call_name(node) != "Query":
        return False
    return node_text(_call_receiver(node)).endswith("URL")


def _identifiers(expression_list: Node | None) -> list[Node]:
    if expression_list is None:
        return []
    if expression_list.type != "expression_list":
        return [expression_list]
    return list(expression_list.named_children)


@dataclass
class _BodyState:
    event_name: str = ""
    bind_target: Node | None = None
    emissions: list[tuple[Node | None, Node]] = field(default_factory=list)
    query_vars: set[str] = field(default_factory=set)


class HandlerAnalyzer:
    def __init__(
        self,
        registry: TypeRegistry,
        functions: FunctionReturnTable | None = None,
        param_types: Iterable[str] = ("RequestEvent",),
    ) -> None:
        self.registry = registry
        self.functions = functions if functions is not None else FunctionReturnTable()
        self.engine = InferenceEngine(registry, self.functions)
        self.param_types = tuple(param_types)

    def is_handler_function(self, function: Node) -> bool:
        if function.type not in ("function_declaration", "method_declaration"):
            return False
        parameters = function.child_by_field_name("parameters")
        if parameters is None:
            return False
        declarations = [child for child in parameters.named_children if child.type.endswith("parameter_declaration")]
        if len(declarations) != 1 or len(declarations[0].children_by_field_name("name")) > 1:
            return False
        type_name = type_expr_to_string(declarations[0].child_by_field_name("type")).lstrip("*")
        return any(type_name.endswith(param_type) for param_type in self.param_types)

    def handler_name(self, function: Node) -> tuple[str, str]:
        """``(name, receiver)``; methods are named ``Receiver.Method``."""
        name = node_text(function.child_by_field_name("name"))
        if function.type != "method_declaration":
            return name, ""
        receiver_list = function.child_by_field_name("receiver")
        receiver = ""
        if receiver_list is not None and receiver_list.named_children:
            receiver_type = receiver_list.named_children[0].child_by_field_name("type")
            receiver = strip_namespace(type_expr_to_string(receiver_type).lstrip("*"))
        return (f"{receiver}.{name}" if receiver else name), receiver

    def bind_function(self, function: Node) -> HandlerDescriptor:
        """Walk a function body for bindings only, without resolving emissions."""
        name, receiver = self.handler_name(function)
        descriptor = HandlerDescriptor(name=name, receiver=receiver)
        self._walk_body(function, descriptor)
        return descriptor

    def analyze(self, function: Node, source_file: str = "", package: str = "") -> HandlerDescriptor:
        name, receiver = self.handler_name(function)
        handler = HandlerDescriptor(
            name=name,
            receiver=receiver,
            package=package,
            source_file=source_file,
            line=function.start_point[0] + 1,
        )
        self._read_directives(function, handler)
        state = self._walk_body(function, handler)

        if state.bind_target is not None:
            handler.request_schema = self._resolve_payload(state.bind_target, handler)

        for status_node, payload in state.emissions:
            status = decode_status(status_node)
            schema = self._resolve_payload(payload, handler)
            if status is not None and not 200 <= status < 300:
                handler.error_responses[str(status)] = schema
                continue
            handler.response_schema = schema
            handler.response_status = status
            handler.response_type = self.engine.infer_type_name(self._unwrap_address(payload), handler.variables)

        logger.debug(
            "Analyzed handler %s: request=%s response=%s auth=%s ops=%s",
            handler.name,
            handler.request_type or "-",
            handler.response_type or ("inline" if handler.response_schema else "-"),
            handler.auth_category or "-",
            handler.data_operations,
        )
        return handler

    def _read_directives(self, function: Node, handler: HandlerDescriptor) -> None:
        for line in leading_comments(function):
            if line.startswith(DIRECTIVE_DESC):
                handler.description = line.removeprefix(DIRECTIVE_DESC).strip()
            elif line.startswith(DIRECTIVE_TAGS):
                tags = line.removeprefix(DIRECTIVE_TAGS).split(",")
                handler.tags.extend(tag.strip() for tag in tags if tag.strip())
            elif not handler.summary:
                handler.summary = line

    def _bind_parameters(self, function: Node, handler: HandlerDescriptor, state: _BodyState) -> None:
        parameters = function.child_by_field_name("parameters")
        if parameters is None:
            return
        for declaration in parameters.named_children:
            if not declaration.type.endswith("parameter_declaration"):
                continue
            type_name = type_expr_to_string(declaration.child_by_field_name("type"))
            for name_node in declaration.children_by_field_name("name"):
                name = node_text(name_node)
                handler.variables[name] = type_name
                if any(type_name.lstrip("*").endswith(param_type) for param_type in self.param_types):
                    state.event_name = name

    def _walk_body(self, function: Node, handler: HandlerDescriptor) -> _BodyState:
        state = _BodyState()
        self._bind_parameters(function, handler, state)
        body = function.child_by_field_name("body")
        if body is None:
            return state

        for node in walk(body):
            match node.type:
                case "short_var_declaration":
                    self._on_assignment(node, handler, state, declare=True)
                case "assignment_statement":
                    self._on_assignment(node, handler, state, declare=False)
                case "var_spec":
                    self._on_var_spec(node, handler, state)
                case "range_clause":
                    self._on_range(node, handler)
                case "call_expression":
                    self._on_call(node, handler, state)
                case "selector_expression":
                    operand = node.child_by_field_name("operand")
                    if node_text(node.child_by_field_name("field")) == "Auth" and node_text(operand) == state.event_name:
                        raise_auth(handler, "auth")
        return state

    def _bind(self, name: str, value: Node, handler: HandlerDescriptor, state: _BodyState) -> None:
        if name == "_":
            return
        handler.variables[name] = self.engine.infer_type_name(value, handler.variables)
        handler.variable_origins[name] = value
        if _is_query_values(value):
            state.query_vars.add(name)

    def _on_assignment(self, node: Node, handler: HandlerDescriptor, state: _BodyState, declare: bool) -> None:
        operator = node_text(node.child_by_field_name("operator")) if not declare else ":="
        if operator not in ("=", ":="):
            return
        lefts = _identifiers(node.child_by_field_name("left"))
        rights = _identifiers(node.child_by_field_name("right"))
        if not lefts or not rights:
            return
        pairs = list(zip(lefts, rights)) if len(lefts) == len(rights) else [(lefts[0], rights[0])]

        for target, value in pairs:
            if target.type == "identifier":
                name = node_text(target)
                if self._on_self_append(name, value, handler):
                    continue
                self._bind(name, value, handler, state)
            elif target.type == "index_expression":
                operand = target.child_by_field_name("operand")
                key = string_literal_value(unwrap_element(target.child_by_field_name("index")))
                if operand is not None and operand.type == "identifier" and key is not None:
                    handler.map_mutations.setdefault(node_text(operand), []).append(MapMutation(key=key, value=value))

    def _on_self_append(self, name: str, value: Node, handler: HandlerDescriptor) -> bool:
        """``xs = append(xs, e)`` records ``e`` and keeps the original binding."""
        value = unwrap_element(value)
        if value is None or value.type != "call_expression" or call_name(value) != "append":
            return False
        arguments = call_arguments(value)
        if not arguments or node_text(arguments[0]) != name:
            return False
        if len(arguments) > 1:
            handler.appended_elements[name] = arguments[-1]
        if not handler.variables.get(name):
            handler.variables[name] = self.engine.infer_type_name(arguments[0], handler.variables)
        return True

    def _on_var_spec(self, node: Node, handler: HandlerDescriptor, state: _BodyState) -> None:
        names = [node_text(name) for name in node.children_by_field_name("name")]
        type_node = node.child_by_field_name("type")
        values = _identifiers(node.child_by_field_name("value"))
        for index, name in enumerate(names):
            if name == "_":
                continue
            value = values[index] if index < len(values) else None
            if value is not None:
                self._bind(name, value, handler, state)
            if type_node is not None:
                handler.variables[name] = type_expr_to_string(type_node)
                if value is None and type_node.type == "struct_type":
                    handler.variable_origins[name] = type_node

    def _on_range(self, node: Node, handler: HandlerDescriptor) -> None:
        targets = [target for target in _identifiers(node.child_by_field_name("left")) if target.type == "identifier"]
        if not targets:
            return
        source_type = self.engine.infer_type_name(node.child_by_field_name("right"), handler.variables).lstrip("*")
        if is_map(source_type):
            parts = split_map_type(source_type)
            types = list(parts) if parts else []
        elif is_collection(source_type):
            types = ["int", element_type(source_type) or ""]
        else:
            types = []
        for target, type_name in zip(targets, types):
            name = node_text(target)
            if name != "_":
                handler.variables[name] = type_name
                handler.variable_origins.pop(name, None)

    def _on_call(self, call: Node, handler: HandlerDescriptor, state: _BodyState) -> None:
        name = call_name(call)
        arguments = call_arguments(call)

        if name in BIND_CALLS and arguments:
            target = unwrap_element(arguments[-1] if name == "Unmarshal" else arguments[0])
            if target is not None and target.type != "call_expression":
                handler.uses_bind_body = True
                if state.bind_target is None:
                    state.bind_target = target
                    handler.request_type = self.engine.infer_type_name(self._unwrap_address(target), handler.variables)
            return

        if name in EMIT_CALLS and arguments:
            status = arguments[0] if len(arguments) >= 2 else None
            state.emissions.append((status, arguments[-1]))
            handler.uses_json_return = True
            return

        if name in AUTH_CALLS:
            category = AUTH_CALLS[name]
            raise_auth(handler, category)
            strings = _string_arguments(call)
            if category == "auth":
                handler.auth_collections.extend(c for c in strings if c not in handler.auth_collections)
            elif category == "superuser_or_owner":
                handler.owner_param = strings[0] if strings else "id"
            return

        if name == "PathValue":
            self._add_parameters(handler, _string_arguments(call), "path")
            return

        receiver = _call_receiver(call)
        if name == "Get" and receiver is not None:
            receiver = unwrap_element(receiver)
            if _is_query_values(receiver) or (receiver.type == "identifier" and node_text(receiver) in state.query_vars):
                self._add_parameters(handler, _string_arguments(call), "query")
            elif node_text(receiver).endswith("Header"):
                self._add_parameters(handler, _string_arguments(call), "header")
            return

        if receiver is not None and DATA_RECEIVER.search(node_text(receiver)):
            operation = self._data_operation(name, arguments, handler)
            if operation and operation not in handler.data_operations:
                handler.data_operations.append(operation)

    def _data_operation(self, name: str, arguments: list[Node], handler: HandlerDescriptor) -> str | None:
        if name == "Save":
            target = self._unwrap_address(arguments[0]) if arguments else None
            origin = handler.variable_origins.get(node_text(target)) if target is not None else None
            origin = unwrap_element(origin)
            if origin is not None and origin.type == "call_expression" and call_name(origin) == "NewRecord":
                return "create"
            return "update"
        if name in ("Delete", "DeleteRecord"):
            return "delete"
        if name in ("Create", "Insert"):
            return "create"
        if name == "Update":
            return "update"
        if name.startswith(("FindRecords", "FindAll")) or name in ("RecordQuery", "CountRecords"):
            return "query"
        if name.startswith("Find"):
            return "read"
        return None

    @staticmethod
    def _add_parameters(handler: HandlerDescriptor, names: list[str], source: str) -> None:
        known = {param.name for param in handler.declared_parameters}
        for name in names:
            if name in known:
                continue
            known.add(name)
            handler.declared_parameters.append(ParamDescriptor(name=name, source=source, required=source == "path"))

    @staticmethod
    def _unwrap_address(node: Node | None) -> Node | None:
        node = unwrap_element(node)
        if node is not None and node.type == "unary_expression" and node_text(node.child_by_field_name("operator")) == "&":
            return unwrap_element(node.child_by_field_name("operand"))
        return node

    def _resolve_payload(self, payload: Node, handler: HandlerDescriptor) -> SchemaNode:
        target = self._unwrap_address(payload)
        shape = self.engine.literal_shape(target, handler)
        if shape is not None:
            return shape
        inferred = self.engine.try_infer(target, handler)
        if inferred is not None:
            return inferred
        descriptor = self.registry.struct_for(self.engine.infer_type_name(target, handler.variables))
        if descriptor is not None:
            return SchemaNode.reference(descriptor.name)
        return SchemaNode.open_object()
