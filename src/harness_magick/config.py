import os
from dataclasses import dataclass, replace
from typing import Any, Optional

ENV_PREFIX = "HARNESS_MAGICK_"

DEFAULT_QUALITY = {"jpg": 85, "webp": 85, "png": 95}


@dataclass(frozen=True)
class GraphicsOptions:
    """Render settings shared by every action of one ``Graphics`` instance."""

    executable: Optional[str] = None
    identify: Optional[str] = None
    timeout: float = 0
    background: str = "transparent"
    quality: Optional[int] = None
    optimize: bool = False

    def quality_for(self, output_format: str) -> int:
        if self.quality is not None and 0 <= self.quality <= 100:
            return self.quality
        return DEFAULT_QUALITY.get(output_format, 90)

    def merged(self, **overrides: Any) -> "GraphicsOptions":
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _parse_bool(value: Optional[str]) -> Optional[bool]:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return None


def _parse_number(value: Optional[str], cast):
    if value is None or not value.strip():
        return None
    try:
        return cast(value.strip())
    except ValueError:
        return None


def options_from_env() -> GraphicsOptions:
    return GraphicsOptions().merged(
        executable=os.getenv(f"{ENV_PREFIX}BIN") or None,
        identify=os.getenv(f"{ENV_PREFIX}IDENTIFY_BIN") or None,
        timeout=_parse_number(os.getenv(f"{ENV_PREFIX}TIMEOUT"), float),
        background=os.getenv(f"{ENV_PREFIX}BACKGROUND") or None,
        quality=_parse_number(os.getenv(f"{ENV_PREFIX}QUALITY"), int),
        optimize=_parse_bool(os.getenv(f"{ENV_PREFIX}OPTIMIZE")),
    )
