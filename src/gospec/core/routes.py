from dataclasses import dataclass

from tree_sitter import Node

from gospec.core.handlers import AUTH_CALLS, AUTH_RANK
from gospec.core.inference import call_arguments, call_name
from gospec.core.parsing import node_text, string_literal_value, unwrap_element, walk
from gospec.models import RouteRegistration

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"})


@dataclass
class _Group:
    prefix: str
    auth_category: str = ""


def join_path(prefix: str, path: str) -> str:
    if not prefix:
        return path
    if not path or path == "/":
        return prefix or "/"
    return prefix.rstrip("/") + "/" + path.lstrip("/")


def _stronger(current: str, candidate: str) -> str:
    if not candidate:
        return current
    if AUTH_RANK.get(candidate, -1) > AUTH_RANK.get(current, -1):
        return candidate
    return current


def _middleware_auth(bind_call: Node) -> str:
    category = ""
    for argument in call_arguments(bind_call):
        argument = unwrap_element(argument)
        if argument is not None and argument.type == "call_expression":
            category = _stronger(category, AUTH_CALLS.get(call_name(argument), ""))
    return category


def _receiver(call: Node) -> Node | None:
    function = unwrap_element(call.child_by_field_name("function"))
    if function is None or function.type != "selector_expression":
        return None
    return unwrap_element(function.child_by_field_name("operand"))


def _chained_bind(call: Node) -> Node | None:
    """The ``.Bind(...)`` call chained directly onto ``call``, if any."""
    selector = call.parent
    if selector is None or selector.type != "selector_expression":
        return None
    outer = selector.parent
    if outer is None or outer.type != "call_expression" or call_name(outer) != "Bind":
        return None
    return outer


def extract_route_registrations(root: Node, source_file: str = "") -> list[RouteRegistration]:
    """Find ``router.GET("/path", handler)`` style registrations in one file.

    ``Group`` prefixes assigned to variables are followed, as is auth added
    through ``.Bind(apis.RequireAuth())`` on a group or a single route.
    """
    groups: dict[str, _Group] = {}
    registrations: list[RouteRegistration] = []

    def group_of(node: Node | None) -> _Group:
        node = unwrap_element(node)
        if node is None:
            return _Group("")
        if node.type == "identifier":
            return groups.get(node_text(node), _Group(""))
        if node.type == "call_expression" and call_name(node) == "Group":
            parent = group_of(_receiver(node))
            arguments = call_arguments(node)
            prefix = string_literal_value(unwrap_element(arguments[0])) if arguments else None
            return _Group(join_path(parent.prefix, prefix or ""), parent.auth_category)
        if node.type == "call_expression" and call_name(node) == "Bind":
            inner = group_of(_receiver(node))
            return _Group(inner.prefix, _stronger(inner.auth_category, _middleware_auth(node)))
        return _Group("")

    for node in walk(root):
        if node.type == "short_var_declaration":
            lefts = node.child_by_field_name("left")
            rights = node.child_by_field_name("right")
            if lefts is None or rights is None or not lefts.named_children or not rights.named_children:
                continue
            value = unwrap_element(rights.named_children[0])
            if value is not None and value.type == "call_expression" and call_name(value) in ("Group", "Bind"):
                groups[node_text(lefts.named_children[0])] = group_of(value)
            continue

        if node.type != "call_expression":
            continue
        name = call_name(node)

        if name == "Bind":
            receiver = _receiver(node)
            if receiver is not None and receiver.type == "identifier" and node_text(receiver) in groups:
                group = groups[node_text(receiver)]
                group.auth_category = _stronger(group.auth_category, _middleware_auth(node))
            continue

        if name not in HTTP_METHODS:
            continue
        arguments = call_arguments(node)
        if len(arguments) < 2:
            continue
        path = string_literal_value(unwrap_element(arguments[0]))
        handler = unwrap_element(arguments[1])
        if path is None or handler is None or handler.type not in ("identifier", "selector_expression"):
            continue

        group = group_of(_receiver(node))
        auth_category = group.auth_category
        bind_call = _chained_bind(node)
        if bind_call is not None:
            auth_category = _stronger(auth_category, _middleware_auth(bind_call))

        registrations.append(
            RouteRegistration(
                method=name,
                path=join_path(group.prefix, path),
                handler=node_text(handler),
                auth_category=auth_category,
                source_file=source_file,
            )
        )
    return registrations
