import os
from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True)
class Settings:
    root: str = "."
    marker: str = "API_SOURCE"
    scan_bytes: int = 2048
    handler_param_types: tuple[str, ...] = ("RequestEvent",)
    log_level: str = "WARNING"

    def override(self, **changes: Any) -> "Settings":
        """Copy with every non-None keyword applied."""
        return replace(self, **{key: value for key, value in changes.items() if value is not None})


def get_settings() -> Settings:
    scan_bytes = os.getenv("GOSPEC_SCAN_BYTES", "2048")
    try:
        parsed_scan_bytes = int(scan_bytes)
    except ValueError:
        raise ValueError(f"GOSPEC_SCAN_BYTES must be an integer, got {scan_bytes!r}") from None
    if parsed_scan_bytes <= 0:
        raise ValueError("GOSPEC_SCAN_BYTES must be positive")

    param_types = os.getenv("GOSPEC_HANDLER_PARAM_TYPES", "RequestEvent")
    return Settings(
        root=os.getenv("GOSPEC_ROOT", "."),
        marker=os.getenv("GOSPEC_MARKER", "API_SOURCE"),
        scan_bytes=parsed_scan_bytes,
        handler_param_types=tuple(item.strip() for item in param_types.split(",") if item.strip()),
        log_level=os.getenv("GOSPEC_LOG_LEVEL", "WARNING").upper(),
    )
