"""Tests for the type registry."""

from __future__ import annotations

import pytest

from gospec.core.registry import TypeRegistry
from gospec.models import FieldDescriptor, TypeDescriptor


def _field(name: str, declared_type: str = "string", json_name: str | None = None) -> FieldDescriptor:
    return FieldDescriptor(name=name, declared_type=declared_type, serialized_name=json_name or name)


def _struct(name: str, *fields: FieldDescriptor, embedded: list[str] | None = None) -> TypeDescriptor:
    return TypeDescriptor(name=name, fields={f.name: f for f in fields}, embedded=embedded or [])


class TestRegistration:
    def test_register_and_get(self) -> None:
        registry = TypeRegistry()
        registry.register_type(_struct("User", _field("ID", json_name="id")))
        user = registry.get("User")
        assert user is not None
        assert "ID" in user.fields

    def test_unnamed_type_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            TypeRegistry().register_type(TypeDescriptor(name=""))

    def test_self_alias_is_ignored(self) -> None:
        registry = TypeRegistry()
        registry.register_alias("ID", "ID")
        assert registry.aliases == {}

    def test_clear_cache(self) -> None:
        registry = TypeRegistry()
        registry.register_type(_struct("User"))
        registry.register_alias("UserID", "string")
        registry.clear_cache()
        assert registry.structs == {}
        assert registry.aliases == {}


class TestResolveAlias:
    def test_follows_chain(self) -> None:
        registry = TypeRegistry()
        registry.register_alias("A", "B")
        registry.register_alias("B", "C")
        assert registry.resolve_alias("A") == ("C", True)

    def test_cycle_terminates(self) -> None:
        registry = TypeRegistry()
        registry.register_alias("A", "B")
        registry.register_alias("B", "A")
        assert registry.resolve_alias("A") == ("A", True)

    def test_namespaced_name_falls_back_to_bare_name(self) -> None:
        assert TypeRegistry().resolve_alias("models.User") == ("User", False)

    def test_namespaced_alias(self) -> None:
        registry = TypeRegistry()
        registry.register_alias("ID", "string")
        assert registry.resolve_alias("types.ID") == ("string", True)

    def test_plain_name(self) -> None:
        assert TypeRegistry().resolve_alias("User") == ("User", False)

    def test_struct_for_through_pointer_and_alias(self) -> None:
        registry = TypeRegistry()
        registry.register_type(_struct("User"))
        registry.register_alias("Account", "User")
        found = registry.struct_for("*models.Account")
        assert found is not None
        assert found.name == "User"


class TestFindField:
    def test_by_go_and_json_name(self) -> None:
        registry = TypeRegistry()
        registry.register_type(_struct("User", _field("CreatedAt", "time.Time", "created_at")))
        by_go = registry.find_field("User", "CreatedAt")
        by_json = registry.find_field("User", "created_at")
        assert by_go is not None and by_json is not None
        assert by_go == by_json

    def test_promoted_through_embedding(self) -> None:
        registry = TypeRegistry()
        registry.register_type(_struct("Base", _field("ID", json_name="id")))
        registry.register_type(_struct("User", _field("Name"), embedded=["*Base"]))
        found = registry.find_field("User", "ID")
        assert found is not None
        assert found.serialized_name == "id"

    def test_embedding_cycle_terminates(self) -> None:
        registry = TypeRegistry()
        registry.register_type(_struct("A", embedded=["B"]))
        registry.register_type(_struct("B", embedded=["A"]))
        assert registry.find_field("A", "Missing") is None


class TestSynthesis:
    def test_schema_for_is_lazy(self) -> None:
        registry = TypeRegistry()
        registry.register_type(_struct("User", _field("Name", json_name="name")))
        schema = registry.schema_for("User")
        assert schema is not None
        assert schema.properties is not None
        assert "name" in schema.properties

    def test_schema_for_unknown(self) -> None:
        assert TypeRegistry().schema_for("Nope") is None

    def test_late_embed_triggers_resynthesis(self) -> None:
        registry = TypeRegistry()
        registry.register_type(_struct("Outer", _field("Name", json_name="name"), embedded=["Base"]))
        assert registry.synthesize_all() == 1
        outer = registry.schema_for("Outer")
        assert outer is not None and outer.properties is not None
        assert set(outer.properties) == {"name"}

        registry.register_type(_struct("Base", _field("ID", json_name="id")))
        assert registry.synthesize_all() == 2
        outer = registry.schema_for("Outer")
        assert outer is not None and outer.properties is not None
        assert set(outer.properties) == {"id", "name"}

        assert registry.synthesize_all() == 0
