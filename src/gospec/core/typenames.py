"""Go type descriptor strings.

Types are carried around as the strings Go source spells them with
(``*Foo``, ``[]pkg.Bar``, ``map[string]any``), normalized so that the schema
synthesizer can take them apart with plain prefix checks.
"""

from tree_sitter import Node

from gospec.core.parsing import node_text, unwrap_element

INTEGER_FORMATS: dict[str, str | None] = {
    "int": None,
    "int8": None,
    "int16": None,
    "int32": "int32",
    "int64": "int64",
    "uint": None,
    "uint8": None,
    "uint16": None,
    "uint32": "int32",
    "uint64": "int64",
    "uintptr": None,
    "byte": None,
    "rune": "int32",
    "time.Duration": "int64",
}

FLOAT_FORMATS: dict[str, str] = {
    "float32": "float",
    "float64": "double",
}

STRING_FORMATS: dict[str, str | None] = {
    "string": None,
    "error": None,
    "time.Time": "date-time",
    "types.DateTime": "date-time",
    "uuid.UUID": "uuid",
}

BOOLEAN_TYPES = frozenset({"bool"})

# Values that serialize to arbitrary JSON.
ANY_TYPES = frozenset({"any", "interface{}", "json.RawMessage", "types.JSONRaw", "types.JSONMap"})

SELF_DESCRIBING_SUFFIXES = ("Request", "Response", "Data", "Payload")


def type_expr_to_string(node: Node | None) -> str:
    """Render a type node (or a type used in expression position) as a descriptor string."""
    node = unwrap_element(node)
    if node is None:
        return ""

    match node.type:
        case "type_identifier" | "identifier" | "package_identifier" | "field_identifier":
            return node_text(node)
        case "qualified_type":
            package = node.child_by_field_name("package")
            name = node.child_by_field_name("name")
            return f"{node_text(package)}.{node_text(name)}"
        case "selector_expression":
            operand = node.child_by_field_name("operand")
            field = node.child_by_field_name("field")
            return f"{node_text(operand)}.{node_text(field)}"
        case "pointer_type":
            inner = node.named_children
            return "*" + type_expr_to_string(inner[0]) if inner else ""
        case "slice_type" | "array_type" | "implicit_length_array_type":
            return "[]" + type_expr_to_string(node.child_by_field_name("element"))
        case "map_type":
            key = type_expr_to_string(node.child_by_field_name("key"))
            value = type_expr_to_string(node.child_by_field_name("value"))
            return f"map[{key}]{value}"
        case "generic_type":
            return type_expr_to_string(node.child_by_field_name("type"))
        case "index_expression":
            return type_expr_to_string(node.child_by_field_name("operand"))
        case "interface_type":
            return "interface{}"
        case "struct_type":
            return "struct{}"
        case "channel_type":
            return "chan " + type_expr_to_string(node.child_by_field_name("value"))
        case "function_type":
            return "func"
        case "parenthesized_type":
            inner = node.named_children
            return type_expr_to_string(inner[0]) if inner else ""
        case _:
            return "".join(node_text(node).split())


def is_pointer(type_name: str) -> bool:
    return type_name.startswith("*")


def is_collection(type_name: str) -> bool:
    return type_name.startswith("[")


def is_map(type_name: str) -> bool:
    return type_name.startswith("map[")


def split_map_type(type_name: str) -> tuple[str, str] | None:
    """Split ``map[K]V`` into ``(K, V)``, honouring nested brackets in K."""
    if not is_map(type_name):
        return None
    depth = 0
    for index in range(3, len(type_name)):
        char = type_name[index]
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return type_name[4:index], type_name[index + 1 :]
    return None


def element_type(type_name: str) -> str | None:
    """Return the element type of a slice/array, or the value type of a map."""
    type_name = type_name.lstrip("*")
    if is_collection(type_name):
        closing = type_name.find("]")
        return type_name[closing + 1 :] if closing != -1 else None
    parts = split_map_type(type_name)
    if parts is not None:
        return parts[1]
    return None


def strip_namespace(type_name: str) -> str:
    """``pkg.Type`` -> ``Type``; composite descriptors are left alone."""
    if type_name.startswith(("*", "[", "map[", "chan ")) or "." not in type_name:
        return type_name
    return type_name.rsplit(".", 1)[1]


def clean_type_name(type_name: str) -> str:
    """Reduce a descriptor to its innermost bare name: ``*[]pkg.Foo`` -> ``Foo``."""
    name = type_name.strip()
    while True:
        if name.startswith("*"):
            name = name[1:]
        elif is_collection(name):
            closing = name.find("]")
            name = name[closing + 1 :]
        elif is_map(name):
            parts = split_map_type(name)
            if parts is None:
                break
            name = parts[1]
        else:
            break
    return strip_namespace(name)


def is_primitive(type_name: str) -> bool:
    return (
        type_name in INTEGER_FORMATS
        or type_name in FLOAT_FORMATS
        or type_name in STRING_FORMATS
        or type_name in BOOLEAN_TYPES
    )


def self_describing_type(name: str) -> str | None:
    """Identifiers like ``createUserRequest`` name their own type (``CreateUserRequest``)."""
    if not any(name.endswith(suffix) and len(name) > len(suffix) for suffix in SELF_DESCRIBING_SUFFIXES):
        return None
    return name[0].upper() + name[1:]
