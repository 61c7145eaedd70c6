"""Tests for Go type descriptor helpers."""

from __future__ import annotations

from collections.abc import Callable

from tree_sitter import Node

from gospec.core.parsing import walk
from gospec.core.typenames import (
    clean_type_name,
    element_type,
    is_primitive,
    self_describing_type,
    split_map_type,
    strip_namespace,
    type_expr_to_string,
)


def _field_types(root: Node) -> dict[str, str]:
    types: dict[str, str] = {}
    for node in walk(root):
        if node.type == "field_declaration":
            name = node.child_by_field_name("name")
            assert name is not None and name.text is not None
            types[name.text.decode()] = type_expr_to_string(node.child_by_field_name("type"))
    return types


class TestTypeExprToString:
    def test_renders_field_types(self, parse_go: Callable[[str], Node]) -> None:
        root = parse_go(
            """
            package p

            type T struct {
                A *pkg.Foo
                B []map[string]any
                C map[string]*Bar
                D interface{}
                E [4]int
                F chan string
                G Page[User]
            }
            """
        )
        assert _field_types(root) == {
            "A": "*pkg.Foo",
            "B": "[]map[string]any",
            "C": "map[string]*Bar",
            "D": "interface{}",
            "E": "[]int",
            "F": "chan string",
            "G": "Page",
        }

    def test_none_is_empty(self) -> None:
        assert type_expr_to_string(None) == ""


class TestSplitMapType:
    def test_simple(self) -> None:
        assert split_map_type("map[string][]int") == ("string", "[]int")

    def test_nested_brackets_in_key(self) -> None:
        assert split_map_type("map[[2]int]string") == ("[2]int", "string")

    def test_not_a_map(self) -> None:
        assert split_map_type("[]string") is None


class TestElementType:
    def test_slice(self) -> None:
        assert element_type("[]Foo") == "Foo"

    def test_pointer_to_slice(self) -> None:
        assert element_type("*[]Foo") == "Foo"

    def test_map_value(self) -> None:
        assert element_type("map[string]Bar") == "Bar"

    def test_scalar_has_none(self) -> None:
        assert element_type("string") is None


class TestNames:
    def test_strip_namespace(self) -> None:
        assert strip_namespace("pkg.Foo") == "Foo"
        assert strip_namespace("[]pkg.Foo") == "[]pkg.Foo"
        assert strip_namespace("Foo") == "Foo"

    def test_clean_type_name(self) -> None:
        assert clean_type_name("*[]pkg.Foo") == "Foo"
        assert clean_type_name("map[string]*models.User") == "User"

    def test_is_primitive(self) -> None:
        assert is_primitive("int64")
        assert is_primitive("time.Time")
        assert not is_primitive("User")

    def test_self_describing_type(self) -> None:
        assert self_describing_type("createUserRequest") == "CreateUserRequest"
        assert self_describing_type("statsResponse") == "StatsResponse"
        assert self_describing_type("Request") is None
        assert self_describing_type("user") is None
