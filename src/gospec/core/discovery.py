import logging
import os
import re
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_MARKER = "API_SOURCE"
DEFAULT_SCAN_BYTES = 2048

SKIPPED_DIRS = frozenset({"vendor", "testdata", "node_modules"})

_MODULE_LINE = re.compile(r"^\s*module\s+(\S+)", re.MULTILINE)


@dataclass(frozen=True)
class GoModule:
    path: str
    root: Path


def _is_skipped_dir(name: str) -> bool:
    return name in SKIPPED_DIRS or name.startswith(".")


def is_go_source(path: Path) -> bool:
    return path.suffix == ".go" and not path.name.endswith("_test.go")


def iter_go_files(root: Path) -> Iterator[Path]:
    """All non-test ``.go`` files under ``root`` in a stable order."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not _is_skipped_dir(d))
        for filename in sorted(filenames):
            path = Path(dirpath) / filename
            if is_go_source(path):
                yield path


def has_source_marker(path: Path, marker: str = DEFAULT_MARKER, scan_bytes: int = DEFAULT_SCAN_BYTES) -> bool:
    """True when the marker comment appears in the first ``scan_bytes`` of the file."""
    with path.open("rb") as handle:
        head = handle.read(scan_bytes).decode("utf-8", errors="replace")
    return re.search(rf"(//|/\*)\s*{re.escape(marker)}\b", head) is not None


def find_marked_files(root: str | Path, marker: str = DEFAULT_MARKER, scan_bytes: int = DEFAULT_SCAN_BYTES) -> list[Path]:
    root_path = Path(root)
    if not root_path.is_dir():
        raise FileNotFoundError(f"Directory not found: {root}")
    marked: list[Path] = []
    for path in iter_go_files(root_path):
        try:
            if has_source_marker(path, marker, scan_bytes):
                marked.append(path)
        except OSError as exc:
            logger.warning("Could not read %s: %s", path, exc)
    logger.info("Found %s marked Go files under %s", len(marked), root_path)
    return marked


def find_module(start: str | Path) -> GoModule | None:
    """Locate the nearest ``go.mod`` at or above ``start``."""
    current = Path(start).resolve()
    if current.is_file():
        current = current.parent
    for directory in (current, *current.parents):
        go_mod = directory / "go.mod"
        if not go_mod.is_file():
            continue
        match = _MODULE_LINE.search(go_mod.read_text(encoding="utf-8", errors="replace"))
        if match:
            return GoModule(path=match.group(1), root=directory)
        return None
    return None


def import_dir(module: GoModule, import_path: str) -> Path | None:
    """Directory of a same-module import, or None for anything external."""
    if import_path == module.path:
        return module.root
    prefix = module.path + "/"
    if not import_path.startswith(prefix):
        return None
    directory = module.root / import_path.removeprefix(prefix)
    return directory if directory.is_dir() else None


def package_files(directory: Path) -> list[Path]:
    return sorted(path for path in directory.iterdir() if path.is_file() and is_go_source(path))
