import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from tree_sitter import Node, Tree

from gospec.config import Settings, get_settings
from gospec.core import enhance
from gospec.core.declarations import FileDeclarations, extract_declarations
from gospec.core.discovery import GoModule, find_marked_files, find_module, import_dir, package_files
from gospec.core.functions import FunctionReturnTable
from gospec.core.handlers import HandlerAnalyzer
from gospec.core.locking import ReadWriteLock
from gospec.core.parsing import SyntaxFailure, node_text, parse_go_source
from gospec.core.registry import TypeRegistry
from gospec.core.routes import extract_route_registrations
from gospec.models import EndpointDescriptor, EnhanceOutcome, HandlerDescriptor, ParseError, RouteRegistration, TypeDescriptor

logger = logging.getLogger(__name__)

SOURCE_PREVIEW_LIMIT = 200


@dataclass
class _ParsedFile:
    path: Path
    tree: Tree
    declarations: FileDeclarations


@dataclass
class _AnalysisState:
    root: str = ""
    registry: TypeRegistry = field(default_factory=TypeRegistry)
    functions: FunctionReturnTable = field(default_factory=FunctionReturnTable)
    handlers: dict[str, HandlerDescriptor] = field(default_factory=dict)
    routes: list[RouteRegistration] = field(default_factory=list)
    parse_errors: list[ParseError] = field(default_factory=list)
    files: list[Path] = field(default_factory=list)
    module: GoModule | None = None
    imported_dirs: list[str] = field(default_factory=list)


def _preview(node: Node | None) -> str:
    text = node_text(node)
    return text if len(text) <= SOURCE_PREVIEW_LIMIT else text[:SOURCE_PREVIEW_LIMIT] + "..."


class SourceAnalyzer:
    """Discovers marked Go files and answers questions about their handlers.

    Rebuilds run entirely under the write lock into a fresh state object, so
    each one starts from the file set left by the previous one and readers
    always see one complete analysis.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._lock = ReadWriteLock()
        self._state = _AnalysisState(root=self.settings.root)

    # ------------------------------------------------------------------
    # Mutating operations

    def discover(self, root: str | None = None) -> None:
        scan_root = root or self.settings.root
        with self._lock.write():
            files = find_marked_files(scan_root, self.settings.marker, self.settings.scan_bytes)
            state = self._build(scan_root, files, find_module(scan_root))
            self._state = state
        logger.info(
            "Discovered %s handlers and %s structs in %s files (%s parse errors)",
            len(state.handlers),
            len(state.registry.structs),
            len(state.files),
            len(state.parse_errors),
        )

    def parse_file(self, path: str) -> None:
        """Add one file to the analyzed set, whether or not it carries the marker."""
        file_path = Path(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"File not found: {path}")
        with self._lock.write():
            files = list(self._state.files)
            if file_path not in files:
                files.append(file_path)
            module = self._state.module or find_module(file_path)
            self._state = self._build(self._state.root, files, module)

    def clear_cache(self) -> None:
        with self._lock.write():
            self._state = _AnalysisState(root=self._state.root)

    # ------------------------------------------------------------------
    # Readers

    def get_all_structs(self) -> dict[str, TypeDescriptor]:
        with self._lock.read():
            return {name: struct.model_copy(deep=True) for name, struct in self._state.registry.structs.items()}

    def get_all_handlers(self) -> dict[str, HandlerDescriptor]:
        with self._lock.read():
            return {name: handler.snapshot() for name, handler in self._state.handlers.items()}

    def get_struct_by_name(self, name: str) -> TypeDescriptor | None:
        with self._lock.read():
            struct = self._state.registry.get(name)
            return struct.model_copy(deep=True) if struct is not None else None

    def get_handler_by_name(self, name: str) -> HandlerDescriptor | None:
        with self._lock.read():
            handler = self._state.handlers.get(name)
            return handler.snapshot() if handler is not None else None

    def get_parse_errors(self) -> list[ParseError]:
        with self._lock.read():
            return [error.model_copy() for error in self._state.parse_errors]

    def route_registrations(self) -> list[RouteRegistration]:
        with self._lock.read():
            return [route.model_copy() for route in self._state.routes]

    def enhance_endpoint(self, endpoint: EndpointDescriptor) -> EnhanceOutcome:
        with self._lock.read():
            return enhance.enhance_endpoint(endpoint, self._state.handlers)

    def debug_data(self) -> dict[str, Any]:
        with self._lock.read():
            return self._debug_data(self._state)

    # ------------------------------------------------------------------
    # Building

    def _load(self, path: Path, state: _AnalysisState) -> _ParsedFile | None:
        try:
            source = path.read_bytes()
        except OSError as exc:
            state.parse_errors.append(ParseError(file=str(path), message=str(exc), kind="io"))
            logger.warning("Could not read %s: %s", path, exc)
            return None
        try:
            tree = parse_go_source(source)
        except SyntaxFailure as exc:
            error = ParseError(file=str(path), message=exc.message, kind="syntax", line=exc.line, column=exc.column)
            state.parse_errors.append(error)
            logger.warning("Skipping %s", error)
            return None
        return _ParsedFile(path=path, tree=tree, declarations=extract_declarations(tree.root_node, str(path)))

    @staticmethod
    def _register(parsed: _ParsedFile, registry: TypeRegistry) -> None:
        for struct in parsed.declarations.structs:
            if registry.get(struct.name) is not None:
                logger.debug("Struct %s from %s replaces an earlier declaration", struct.name, parsed.path)
            registry.register_type(struct)
        for name, target in parsed.declarations.aliases.items():
            registry.register_alias(name, target)

    def _build(self, root: str, files: list[Path], module: GoModule | None) -> _AnalysisState:
        state = _AnalysisState(root=root, files=list(files), module=module)

        marked: list[_ParsedFile] = []
        for path in files:
            parsed = self._load(path, state)
            if parsed is not None:
                self._register(parsed, state.registry)
                marked.append(parsed)

        imported: list[_ParsedFile] = []
        if module is not None:
            seen_files = {parsed.path.resolve() for parsed in marked}
            seen_dirs: set[Path] = set()
            for parsed in marked:
                for import_path in parsed.declarations.imports:
                    directory = import_dir(module, import_path)
                    if directory is None or directory in seen_dirs:
                        continue
                    seen_dirs.add(directory)
                    state.imported_dirs.append(str(directory))
                    for go_file in package_files(directory):
                        if go_file.resolve() in seen_files:
                            continue
                        seen_files.add(go_file.resolve())
                        declarations_only = self._load(go_file, state)
                        if declarations_only is not None:
                            self._register(declarations_only, state.registry)
                            imported.append(declarations_only)
            logger.debug("Loaded declarations from %s imported packages", len(seen_dirs))

        state.registry.synthesize_all()

        analyzer = HandlerAnalyzer(state.registry, state.functions, self.settings.handler_param_types)
        all_functions = [function for parsed in marked + imported for function in parsed.declarations.functions]
        state.functions.build(all_functions, analyzer)

        for parsed in marked:
            for function in parsed.declarations.functions:
                if not analyzer.is_handler_function(function):
                    continue
                handler = analyzer.analyze(function, str(parsed.path), parsed.declarations.package)
                previous = state.handlers.get(handler.name)
                if previous is not None:
                    logger.debug(
                        "Handler %s from %s replaces the one in %s", handler.name, parsed.path, previous.source_file
                    )
                state.handlers[handler.name] = handler
            state.routes.extend(extract_route_registrations(parsed.tree.root_node, str(parsed.path)))
        return state

    # ------------------------------------------------------------------
    # Debug dump

    @staticmethod
    def _debug_data(state: _AnalysisState) -> dict[str, Any]:
        registry = state.registry
        structs: dict[str, Any] = {}
        for name in sorted(registry.structs):
            struct = registry.structs[name]
            structs[name] = {
                "name": struct.name,
                "package": struct.package,
                "source_file": struct.source_file,
                "field_count": len(struct.fields),
                "embedded": list(struct.embedded),
                "fields": [
                    {
                        "name": field_.name,
                        "type": field_.declared_type,
                        "json_name": field_.serialized_name,
                        "json_omit_empty": field_.omit_when_empty,
                        "is_pointer": field_.is_pointer,
                        "required": field_.required,
                    }
                    for field_ in struct.fields.values()
                ],
                "json_schema": struct.json_schema.to_openapi() if struct.json_schema else None,
            }

        handlers: dict[str, Any] = {}
        for name in sorted(state.handlers):
            handler = state.handlers[name]
            variables: dict[str, Any] = {}
            for variable, type_name in handler.variables.items():
                entry: dict[str, Any] = {"type": type_name}
                origin = handler.variable_origins.get(variable)
                if origin is not None:
                    entry.update(has_expr=True, expr_type=origin.type, expr_source=_preview(origin))
                variables[variable] = entry
            handlers[name] = {
                "name": handler.name,
                "source_file": handler.source_file,
                "line": handler.line,
                "api_description": handler.description,
                "api_tags": list(handler.tags),
                "request_type": handler.request_type,
                "response_type": handler.response_type,
                "response_status": handler.response_status,
                "request_schema": handler.request_schema.to_openapi() if handler.request_schema else None,
                "response_schema": handler.response_schema.to_openapi() if handler.response_schema else None,
                "error_responses": {status: node.to_openapi() for status, node in handler.error_responses.items()},
                "parameters": [param.model_dump() for param in handler.declared_parameters],
                "variables": variables,
                "map_mutations": {
                    variable: [
                        {"key": m.key, "value_type": m.value.type, "value_source": _preview(m.value)}
                        for m in mutations
                    ]
                    for variable, mutations in handler.map_mutations.items()
                },
                "appended_elements": {
                    variable: {"expr_type": node.type, "expr_source": _preview(node)}
                    for variable, node in handler.appended_elements.items()
                },
                "auth_required": handler.auth_required,
                "auth_type": handler.auth_category,
                "data_operations": list(handler.data_operations),
                "uses_bind_body": handler.uses_bind_body,
                "uses_json_return": handler.uses_json_return,
            }

        return {
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "root": state.root,
            "ast": {
                "total_structs": len(registry.structs),
                "total_handlers": len(state.handlers),
                "structs": structs,
                "type_aliases": dict(registry.aliases),
                "func_return_types": dict(state.functions.return_types),
                "func_body_schemas": {name: node.to_openapi() for name, node in state.functions.deep_schemas.items()},
                "module_path": state.module.path if state.module else "",
                "imported_packages": sorted(state.imported_dirs),
                "files": [str(path) for path in state.files],
            },
            "handlers": handlers,
            "routes": [route.model_dump() for route in state.routes],
            "parse_errors": [error.model_dump() for error in state.parse_errors],
        }
