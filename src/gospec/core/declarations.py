import re
from dataclasses import dataclass, field

from tree_sitter import Node

from gospec.core.parsing import capture_nodes, leading_comments, load_query, node_text, string_literal_value
from gospec.core.typenames import type_expr_to_string
from gospec.models import FieldDescriptor, TypeDescriptor

_TAG_PATTERN = re.compile(r'(\w+):"([^"]*)"')


@dataclass
class FileDeclarations:
    """Everything the declaration pass pulls out of one Go file."""

    path: str
    package: str = ""
    imports: list[str] = field(default_factory=list)
    structs: list[TypeDescriptor] = field(default_factory=list)
    aliases: dict[str, str] = field(default_factory=dict)
    functions: list[Node] = field(default_factory=list)


def parse_struct_tag(raw_tag: str) -> dict[str, str]:
    """``json:"id,omitempty" validate:"required"`` -> ``{"json": "id,omitempty", ...}``."""
    return {key: value for key, value in _TAG_PATTERN.findall(raw_tag)}


def _validation_rules(tags: dict[str, str]) -> tuple[bool, dict[str, str]]:
    required = False
    rules: dict[str, str] = {}
    for tag_name in ("validate", "binding"):
        for rule in tags.get(tag_name, "").split(","):
            rule = rule.strip()
            if not rule:
                continue
            if rule == "required":
                required = True
            elif "=" in rule:
                key, _, value = rule.partition("=")
                rules[key] = value
    return required, rules


def _build_field(name: str, type_node: Node | None, tag_node: Node | None, is_pointer: bool, description: str) -> FieldDescriptor:
    declared_type = type_expr_to_string(type_node)
    tags = parse_struct_tag(string_literal_value(tag_node) or "") if tag_node is not None else {}
    json_name, _, json_options = tags.get("json", "").partition(",")
    required, rules = _validation_rules(tags)
    return FieldDescriptor(
        name=name,
        declared_type=declared_type,
        serialized_name=json_name or name,
        omit_when_empty="omitempty" in json_options.split(","),
        is_pointer=is_pointer or declared_type.startswith("*"),
        required=required,
        validation=rules,
        description=description,
    )


def parse_field_list(struct_type: Node) -> tuple[dict[str, FieldDescriptor], list[str]]:
    """Split a ``struct_type`` node into named fields and embedded type names."""
    fields: dict[str, FieldDescriptor] = {}
    embedded: list[str] = []
    field_list = next((child for child in struct_type.named_children if child.type == "field_declaration_list"), None)
    if field_list is None:
        return fields, embedded

    for declaration in field_list.named_children:
        if declaration.type != "field_declaration":
            continue
        type_node = declaration.child_by_field_name("type")
        tag_node = declaration.child_by_field_name("tag")
        names = [node_text(child) for child in declaration.children_by_field_name("name")]
        description = " ".join(leading_comments(declaration))

        if names:
            for name in names:
                fields[name] = _build_field(name, type_node, tag_node, False, description)
            continue

        pointer = any(child.type == "*" for child in declaration.children)
        type_name = type_expr_to_string(type_node)
        tags = parse_struct_tag(string_literal_value(tag_node) or "") if tag_node is not None else {}
        json_name = tags.get("json", "").partition(",")[0]
        if json_name and json_name != "-":
            # A tagged embed serializes as a nested member, not promoted fields.
            bare = type_name.rsplit(".", 1)[-1]
            fields[bare] = _build_field(bare, type_node, tag_node, pointer, description)
            continue
        embedded.append(("*" if pointer else "") + type_name)

    return fields, embedded


def _type_specs(declaration: Node) -> list[Node]:
    return [child for child in declaration.named_children if child.type in ("type_spec", "type_alias")]


def extract_declarations(root: Node, path: str = "") -> FileDeclarations:
    """Collect package, imports, structs, aliases and function nodes from one parsed file."""
    captures = capture_nodes(load_query("declarations"), root)
    result = FileDeclarations(path=path)

    package_nodes = captures.get("package.name", [])
    if package_nodes:
        result.package = node_text(package_nodes[0])

    for spec in captures.get("import.spec", []):
        import_path = string_literal_value(spec.child_by_field_name("path"))
        if import_path:
            result.imports.append(import_path)

    for declaration in captures.get("type.declaration", []):
        specs = _type_specs(declaration)
        for spec in specs:
            name = node_text(spec.child_by_field_name("name"))
            type_node = spec.child_by_field_name("type")
            if not name or type_node is None:
                continue
            if spec.type == "type_spec" and type_node.type == "struct_type":
                comments = leading_comments(spec) or (leading_comments(declaration) if len(specs) == 1 else [])
                fields, embedded = parse_field_list(type_node)
                result.structs.append(
                    TypeDescriptor(
                        name=name,
                        package=result.package,
                        fields=fields,
                        embedded=embedded,
                        description=comments[0] if comments else "",
                        source_file=path,
                    )
                )
            else:
                result.aliases[name] = type_expr_to_string(type_node)

    result.functions = captures.get("function.declaration", []) + captures.get("method.declaration", [])
    result.functions.sort(key=lambda node: node.start_byte)
    return result
