import shlex
from pathlib import Path
from typing import List, Sequence, Union

from harness_magick.core.geometry import PlanResult, Size

PathLike = Union[str, Path]

# formats whose first page is selected with an [n] suffix on the input path
PAGED_FORMATS = {"pdf", "eps", "tif"}
QUALITY_FORMATS = {"jpg", "png", "webp"}
FORMAT_ALIASES = {"jpeg": "jpg", "tiff": "tif"}


def normalize_format(extension: str) -> str:
    ext = extension.lower().lstrip(".")
    return FORMAT_ALIASES.get(ext, ext)


def format_from_path(path: PathLike) -> str:
    return normalize_format(Path(path).suffix)


def page_number(input_format: str) -> str:
    if normalize_format(input_format) in PAGED_FORMATS:
        return "[0]"
    return ""


def background_args(size: Size, background: str, output_format: str) -> List[str]:
    args = ["-size", f"{size[0]}x{size[1]}"]
    if background.startswith("#"):
        args += ["-background", background]
    elif background == "checkerboard":
        args += ["-background", "none", "pattern:checkerboard"]
    elif output_format == "jpg":
        args += ["-background", "#FFF"]
    else:
        args += ["-background", "none"]
    return args


def quality_args(output_format: str, quality: int) -> List[str]:
    if output_format in QUALITY_FORMATS:
        return ["-quality", str(quality)]
    return []


def optimize_args(input_format: str, output_format: str) -> List[str]:
    args = ["-strip"]
    if output_format == "jpg":
        args += ["-interlace", "Plane"]
    elif output_format == "png":
        args += ["-define", "png:format=png00"]
    elif output_format == "webp" and input_format == "png":
        args += ["-define", "webp:lossless=true", "-define", "webp:image-hint=graph"]
    return args


def build_convert_command(
    executable: Sequence[str],
    input_path: PathLike,
    output_path: PathLike,
    plan: PlanResult,
    *,
    input_format: str,
    output_format: str,
    background: str,
    quality: int,
) -> List[str]:
    """Assemble the full ``convert`` argv for one render.

    The source is processed inside a parenthesised sub-stack so that the
    background canvas (sized to the final tracked size) sits underneath it for
    the closing ``-flatten``.
    """
    return [
        *executable,
        *background_args(plan.size, background, output_format),
        "(",
        "-auto-orient",
        "+profile",
        "*",
        "-auto-orient",
        f"{input_path}{page_number(input_format)}",
        *plan.args(),
        ")",
        "-colorspace",
        "sRGB",
        "-flatten",
        *quality_args(output_format, quality),
        *optimize_args(input_format, output_format),
        f"{output_format}:{output_path}",
    ]


def shell_command(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(arg)) for arg in argv)
