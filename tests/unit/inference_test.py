"""Tests for expression type and shape inference."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from tree_sitter import Node

from gospec.core.inference import InferenceEngine, call_name
from gospec.core.parsing import walk
from gospec.core.registry import TypeRegistry
from gospec.models import FieldDescriptor, HandlerDescriptor, TypeDescriptor

ExprParser = Callable[[str], Node]


@pytest.fixture
def expr(parse_go: Callable[[str], Node]) -> ExprParser:
    """Parse ``var x = <source>`` and return the value expression."""

    def _expr(source: str) -> Node:
        root = parse_go(f"package p\n\nvar x = {source}\n")
        spec = next(node for node in walk(root) if node.type == "var_spec")
        value = spec.child_by_field_name("value")
        assert value is not None
        return value.named_children[0] if value.type == "expression_list" else value

    return _expr


@pytest.fixture
def engine() -> InferenceEngine:
    registry = TypeRegistry()
    registry.register_type(
        TypeDescriptor(
            name="User",
            fields={
                "Email": FieldDescriptor(name="Email", declared_type="string", serialized_name="email"),
                "Age": FieldDescriptor(name="Age", declared_type="int", serialized_name="age"),
            },
        )
    )
    return InferenceEngine(registry)


class TestCallName:
    def test_plain_and_selector(self, expr: ExprParser) -> None:
        assert call_name(expr("foo()")) == "foo"
        assert call_name(expr("e.App.FindRecordById(\"users\", id)")) == "FindRecordById"


class TestInferTypeName:
    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("User{}", "User"),
            ("&User{}", "User"),
            ("new(User)", "*User"),
            ("make([]Item, 0)", "[]Item"),
            ("NewWidget()", "Widget"),
            ("int64(n)", "int64"),
            ("len(items)", "int"),
            ('app.FindRecordById("users", id)', "Record"),
            ('app.FindRecordsByFilter("posts", "")', "[]Record"),
            ('rec.GetString("name")', "string"),
            ('m["k"]', "any"),
            ("xs[1:]", "[]any"),
            ("createUserRequest", "CreateUserRequest"),
            ('"text"', "string"),
            ("1.5", "float64"),
            ("!ok", "bool"),
        ],
    )
    def test_expressions(self, engine: InferenceEngine, expr: ExprParser, source: str, expected: str) -> None:
        assert engine.infer_type_name(expr(source), {}) == expected

    def test_bound_identifier(self, engine: InferenceEngine, expr: ExprParser) -> None:
        assert engine.infer_type_name(expr("items"), {"items": "[]Item"}) == "[]Item"

    def test_index_into_bound_slice(self, engine: InferenceEngine, expr: ExprParser) -> None:
        assert engine.infer_type_name(expr("items[0]"), {"items": "[]Item"}) == "Item"

    def test_selector_on_known_struct(self, engine: InferenceEngine, expr: ExprParser) -> None:
        assert engine.infer_type_name(expr("u.Email"), {"u": "*User"}) == "string"

    def test_unknown_is_empty(self, engine: InferenceEngine, expr: ExprParser) -> None:
        assert engine.infer_type_name(expr("mystery"), {}) == ""


class TestInferSchema:
    def test_string_literal_example(self, engine: InferenceEngine, expr: ExprParser) -> None:
        node = engine.infer_schema(expr('"hello"'), HandlerDescriptor(name="h"))
        assert node.type == "string"
        assert node.example == "hello"

    def test_integer_literal_example(self, engine: InferenceEngine, expr: ExprParser) -> None:
        node = engine.infer_schema(expr("0x10"), HandlerDescriptor(name="h"))
        assert node.type == "integer"
        assert node.example == 16

    def test_float_literal(self, engine: InferenceEngine, expr: ExprParser) -> None:
        assert engine.infer_schema(expr("3.5"), HandlerDescriptor(name="h")).type == "number"

    def test_boolean_literal(self, engine: InferenceEngine, expr: ExprParser) -> None:
        node = engine.infer_schema(expr("true"), HandlerDescriptor(name="h"))
        assert node.type == "boolean"
        assert node.example is True

    def test_nil_is_nullable(self, engine: InferenceEngine, expr: ExprParser) -> None:
        node = engine.infer_schema(expr("nil"), HandlerDescriptor(name="h"))
        assert node.nullable

    def test_count_is_non_negative_integer(self, engine: InferenceEngine, expr: ExprParser) -> None:
        node = engine.infer_schema(expr("len(items)"), HandlerDescriptor(name="h"))
        assert node.type == "integer"
        assert node.minimum == 0

    def test_time_format_is_date_time(self, engine: InferenceEngine, expr: ExprParser) -> None:
        node = engine.infer_schema(expr("time.Now().Format(time.RFC3339)"), HandlerDescriptor(name="h"))
        assert node.format == "date-time"

    def test_time_named_calls_are_date_time(self, engine: InferenceEngine, expr: ExprParser) -> None:
        handler = HandlerDescriptor(name="h")
        assert engine.infer_schema(expr("types.NowDateTime()"), handler).format == "date-time"
        assert engine.infer_schema(expr('record.GetTime("seen")'), handler).format == "date-time"

    def test_time_methods_follow_receiver_type(self, engine: InferenceEngine, expr: ExprParser) -> None:
        handler = HandlerDescriptor(name="h", variables={"started": "time.Time", "hits": "atomic.Int64"})
        assert engine.infer_schema(expr("started.Add(time.Hour)"), handler).format == "date-time"
        assert engine.infer_schema(expr("time.Now().UTC().Format(time.RFC3339)"), handler).format == "date-time"
        assert engine.infer_schema(expr("hits.Add(1)"), handler).format is None

    def test_untyped_counter_add_is_not_date_time(self, engine: InferenceEngine, expr: ExprParser) -> None:
        handler = HandlerDescriptor(name="h")
        assert engine.infer_schema(expr("counter.Add(1)"), handler).format is None
        assert engine.infer_schema(expr("r.UpdatedAt.Format(time.RFC3339)"), handler).format == "date-time"

    def test_comparison_is_boolean(self, engine: InferenceEngine, expr: ExprParser) -> None:
        assert engine.infer_schema(expr("a > b"), HandlerDescriptor(name="h")).type == "boolean"

    def test_selector_uses_field_type(self, engine: InferenceEngine, expr: ExprParser) -> None:
        handler = HandlerDescriptor(name="h", variables={"u": "User"})
        assert engine.infer_schema(expr("u.Age"), handler).type == "integer"

    def test_selector_heuristics(self, engine: InferenceEngine, expr: ExprParser) -> None:
        handler = HandlerDescriptor(name="h")
        assert engine.infer_schema(expr("r.UpdatedAt"), handler).format == "date-time"
        assert engine.infer_schema(expr("r.IsActive"), handler).type == "boolean"
        assert engine.infer_schema(expr("r.TotalCount"), handler).type == "integer"

    def test_anonymous_struct_literal(self, engine: InferenceEngine, expr: ExprParser) -> None:
        node = engine.infer_schema(expr('struct {\n\tName string `json:"name"`\n}{Name: "x"}'), HandlerDescriptor(name="h"))
        assert node.properties is not None
        assert list(node.properties) == ["name"]
        assert node.required == ["name"]

    def test_map_literal_keys_are_required(self, engine: InferenceEngine, expr: ExprParser) -> None:
        node = engine.infer_schema(expr('map[string]any{"ok": true, "count": 2}'), HandlerDescriptor(name="h"))
        assert node.properties is not None
        assert node.properties["ok"].type == "boolean"
        assert node.properties["count"].type == "integer"
        assert node.required == ["ok", "count"]

    def test_slice_literal_with_elided_element_type(self, engine: InferenceEngine, expr: ExprParser) -> None:
        node = engine.infer_schema(expr('[]map[string]any{{"id": "a"}}'), HandlerDescriptor(name="h"))
        assert node.type == "array"
        assert node.items is not None and node.items.properties is not None
        assert "id" in node.items.properties

    def test_named_struct_literal_is_reference(self, engine: InferenceEngine, expr: ExprParser) -> None:
        assert engine.infer_schema(expr("User{}"), HandlerDescriptor(name="h")).ref == "User"

    def test_unrecognized_falls_back_to_string(self, engine: InferenceEngine, expr: ExprParser) -> None:
        handler = HandlerDescriptor(name="h")
        assert engine.try_infer(expr("func() {}"), handler) is None
        assert engine.infer_schema(expr("func() {}"), handler).type == "string"
