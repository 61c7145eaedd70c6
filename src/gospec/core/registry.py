import logging

from gospec.core.schema import SchemaSynthesizer
from gospec.core.typenames import strip_namespace
from gospec.models import FieldDescriptor, SchemaNode, TypeDescriptor

logger = logging.getLogger(__name__)


class TypeRegistry:
    """Struct declarations, type aliases and their synthesized schemas.

    Registration never synthesizes. ``synthesize_all`` runs once every
    declaration of a file set has been registered, so that embedded types
    declared in other files or packages are visible when a struct is flattened.
    """

    def __init__(self) -> None:
        self._structs: dict[str, TypeDescriptor] = {}
        self._aliases: dict[str, str] = {}
        self._unresolved_embeds: dict[str, set[str]] = {}
        self.synthesizer = SchemaSynthesizer(self)

    @property
    def structs(self) -> dict[str, TypeDescriptor]:
        return self._structs

    @property
    def aliases(self) -> dict[str, str]:
        return self._aliases

    def register_type(self, descriptor: TypeDescriptor) -> None:
        if not descriptor.name:
            raise ValueError("Type descriptor must be named")
        self._structs[descriptor.name] = descriptor

    def register_alias(self, name: str, target: str) -> None:
        if not name or not target or name == target:
            return
        self._aliases[name] = target

    def get(self, name: str) -> TypeDescriptor | None:
        return self._structs.get(name)

    def resolve_alias(self, name: str, visited: set[str] | None = None) -> tuple[str, bool]:
        """Follow the alias chain starting at ``name``.

        Returns ``(canonical, was_alias)``. A cycle stops at the first name
        seen twice. ``pkg.Name`` without an alias of its own falls back to the
        bare ``Name``.
        """
        seen = visited if visited is not None else set()
        current = name
        was_alias = False
        while current not in seen:
            seen.add(current)
            target = self._aliases.get(current)
            if target is None:
                bare = strip_namespace(current)
                if bare == current:
                    break
                target = self._aliases.get(bare, bare)
            current = target
            was_alias = was_alias or current != strip_namespace(name)
        return current, was_alias

    def struct_for(self, type_name: str) -> TypeDescriptor | None:
        """Registered struct behind a possibly pointer, namespaced or aliased name."""
        canonical, _ = self.resolve_alias(type_name.lstrip("*"))
        return self._structs.get(canonical.lstrip("*"))

    def schema_for(self, name: str) -> SchemaNode | None:
        descriptor = self.struct_for(name)
        if descriptor is None:
            return None
        if descriptor.json_schema is None:
            self._synthesize(descriptor)
        return descriptor.json_schema

    def find_field(self, struct_name: str, field_name: str) -> FieldDescriptor | None:
        """Look a field up by Go or JSON name, including promoted fields."""
        return self._find_field(struct_name, field_name, set())

    def _find_field(self, struct_name: str, field_name: str, visited: set[str]) -> FieldDescriptor | None:
        descriptor = self.struct_for(struct_name)
        if descriptor is None or descriptor.name in visited:
            return None
        visited.add(descriptor.name)
        field = descriptor.fields.get(field_name)
        if field is not None:
            return field
        for candidate in descriptor.fields.values():
            if candidate.serialized_name == field_name:
                return candidate
        for embedded in descriptor.embedded:
            found = self._find_field(embedded, field_name, visited)
            if found is not None:
                return found
        return None

    def synthesize_all(self) -> int:
        """Fill every missing struct schema; return how many were (re)built."""
        built = 0
        for name, descriptor in self._structs.items():
            stale = self._unresolved_embeds.get(name)
            now_known = bool(stale) and any(self.struct_for(embedded) for embedded in stale or ())
            if descriptor.json_schema is not None and not now_known:
                continue
            self._synthesize(descriptor)
            built += 1
        logger.debug("Synthesized %s struct schemas", built)
        return built

    def _synthesize(self, descriptor: TypeDescriptor) -> None:
        descriptor.json_schema = self.synthesizer.struct_to_schema(descriptor)
        missing = {embedded for embedded in descriptor.embedded if self.struct_for(embedded) is None}
        if missing:
            self._unresolved_embeds[descriptor.name] = missing
        else:
            self._unresolved_embeds.pop(descriptor.name, None)

    def clear_cache(self) -> None:
        self._structs.clear()
        self._aliases.clear()
        self._unresolved_embeds.clear()
