import logging
import re
from pathlib import Path
from typing import Optional, Sequence, Union

from PIL import Image

from harness_magick.core.command import format_from_path, page_number
from harness_magick.core.errors import ExecutionError, ProbeError
from harness_magick.core.geometry import Size
from harness_magick.core.process import run_process

logger = logging.getLogger(__name__)

# Pillow cannot read the page size of these without a rasteriser
DOCUMENT_FORMATS = {"pdf", "eps"}

# EXIF orientations 5-8 are rotated by 90 degrees; -auto-orient swaps the sides
ROTATED_EXIF = {5, 6, 7, 8}
ROTATED_ORIENTATIONS = {"LeftTop", "RightTop", "RightBottom", "LeftBottom"}

_DIMENSIONS = re.compile(r"(\d+)x(\d+)(?::(\w*))?")


def pillow_size(path: Union[str, Path]) -> Optional[Size]:
    """Read the size from the image header, or None when Pillow cannot."""
    try:
        with Image.open(path) as image:
            width, height = image.size
            orientation = image.getexif().get(274)
    except (OSError, ValueError, Image.DecompressionBombError) as exc:
        logger.debug("pillow could not read %s: %s", path, exc)
        return None
    if orientation in ROTATED_EXIF:
        return (height, width)
    return (width, height)


def parse_identify_output(text: str) -> Optional[Size]:
    for line in text.splitlines():
        match = _DIMENSIONS.search(line)
        if not match:
            continue
        width, height = int(match.group(1)), int(match.group(2))
        if match.group(3) in ROTATED_ORIENTATIONS:
            return (height, width)
        return (width, height)
    return None


def identify_size(identify: Sequence[str], path: Union[str, Path], timeout_seconds: float = 0) -> Size:
    pages = page_number(format_from_path(path))
    cmd = [*identify, "-ping", "-format", "%wx%h:%[orientation]\n", f"{path}{pages}"]
    try:
        result = run_process(cmd, timeout_seconds)
    except ExecutionError as exc:
        raise ProbeError(exc.message) from exc
    if not result.ok:
        message = result.stderr_text().strip() or result.stdout_text().strip()
        if result.timed_out:
            message = "Size probe over timeout"
        raise ProbeError(message or f"identify exited with status {result.exit_status}")
    size = parse_identify_output(result.stdout_text())
    if size is None:
        raise ProbeError(f"Unexpected identify output: {result.stdout_text().strip()!r}")
    return size


def probe_size(identify: Sequence[str], path: Union[str, Path], timeout_seconds: float = 0) -> Size:
    if format_from_path(path) not in DOCUMENT_FORMATS:
        size = pillow_size(path)
        if size is not None:
            return size
    logger.debug("falling back to identify for %s", path)
    return identify_size(identify, path, timeout_seconds)
