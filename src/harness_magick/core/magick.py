import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from harness_magick.core.errors import ExecutionError


@dataclass(frozen=True)
class Toolchain:
    convert: List[str]
    identify: List[str]

    @property
    def backend(self) -> str:
        name = Path(self.convert[0]).name.lower()
        if name.startswith("magick"):
            return "imagemagick:magick"
        return "imagemagick:convert"


def _existing(candidate: Optional[str]) -> Optional[str]:
    if not candidate:
        return None
    if Path(candidate).exists():
        return candidate
    return shutil.which(candidate)


def resolve_magick_binary(executable: Optional[str] = None) -> str:
    explicit = executable or os.getenv("HARNESS_MAGICK_BIN")
    if explicit:
        found = _existing(explicit)
        if found:
            return found
        raise ExecutionError(f"ImageMagick binary not found: {explicit}", code="MAGICK_NOT_FOUND")

    for name in ("magick", "convert"):
        found = shutil.which(name)
        if found:
            return found
    raise ExecutionError(
        "ImageMagick binary not found. Install ImageMagick or set HARNESS_MAGICK_BIN.",
        code="MAGICK_NOT_FOUND",
    )


def identify_command(convert: str, identify: Optional[str] = None) -> List[str]:
    """Derive the introspection command from the convert executable.

    ``magick`` hosts identify as a sub-command; a classic ``convert`` binary has
    an ``identify`` sibling in the same directory.
    """
    explicit = identify or os.getenv("HARNESS_MAGICK_IDENTIFY_BIN")
    if explicit:
        return [explicit]

    path = Path(convert)
    name = path.name
    if name.lower().startswith("magick"):
        return [convert, "identify"]
    if name.startswith("convert"):
        return [str(path.with_name("identify" + name[len("convert") :]))]
    return [shutil.which("identify") or "identify"]


def resolve_toolchain(executable: Optional[str] = None, identify: Optional[str] = None) -> Toolchain:
    convert = resolve_magick_binary(executable)
    return Toolchain(convert=[convert], identify=identify_command(convert, identify))
