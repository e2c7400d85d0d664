import re
import sys
from pathlib import Path
from typing import Any, Dict, Optional

from PIL import Image

from harness_magick import __version__
from harness_magick.config import GraphicsOptions, options_from_env
from harness_magick.core.errors import ConversionError
from harness_magick.core.geometry import ActionKind, ActionRequest
from harness_magick.core.magick import resolve_toolchain
from harness_magick.core.probe import probe_size
from harness_magick.core.process import run_process
from harness_magick.graphics import Graphics, can_read


ACTION_METHODS = [
    "system.version",
    "system.actions",
    "system.doctor",
    "image.inspect",
    "image.can_read",
    "image.render",
    "image.crop",
    "image.resize",
    "image.thumb",
    "image.thumbfill",
]

# "<action>-<W>x<H>[+X+Y][@CX,CY]"; X as a side means "keep aspect"
_ACTION_STRING = re.compile(
    r"^(?P<kind>crop|resize|thumb|thumbfill)-"
    r"(?P<width>\d+|X)x(?P<height>\d+|X)"
    r"(?:(?P<x>[+-]\d+)(?P<y>[+-]\d+))?"
    r"(?:@(?P<cx>\d+(?:\.\d+)?),(?P<cy>\d+(?:\.\d+)?))?$",
    re.IGNORECASE,
)


def _require_path(path: str) -> Path:
    p = Path(path)
    if not p.exists():
        raise ConversionError("NOT_FOUND", f"File not found: {path}")
    return p


def _side(value: Any, name: str, optional: bool = False) -> Optional[int]:
    if value is None or (isinstance(value, str) and value.upper() == "X"):
        if optional:
            return None
        raise ConversionError("INVALID_INPUT", f"{name} is required")
    try:
        side = int(value)
    except (TypeError, ValueError) as exc:
        raise ConversionError("INVALID_INPUT", f"{name} must be an integer") from exc
    if side <= 0:
        raise ConversionError("INVALID_INPUT", f"{name} must be > 0")
    return side


def _percent(value: Any, name: str) -> float:
    try:
        percent = float(value)
    except (TypeError, ValueError) as exc:
        raise ConversionError("INVALID_INPUT", f"{name} must be a number") from exc
    if not 0 <= percent <= 100:
        raise ConversionError("INVALID_INPUT", f"{name} must be between 0 and 100")
    return percent


def parse_action_string(text: str) -> Dict[str, Any]:
    match = _ACTION_STRING.match(text.strip())
    if not match:
        raise ConversionError("INVALID_INPUT", f"Invalid action: {text}")
    data: Dict[str, Any] = {
        "action": match.group("kind").lower(),
        "width": match.group("width"),
        "height": match.group("height"),
    }
    if match.group("x") is not None:
        data["x"] = int(match.group("x"))
        data["y"] = int(match.group("y"))
    if match.group("cx") is not None:
        data["centerX"] = float(match.group("cx"))
        data["centerY"] = float(match.group("cy"))
    return data


def parse_action(raw: Any) -> ActionRequest:
    data = parse_action_string(raw) if isinstance(raw, str) else raw
    if not isinstance(data, dict):
        raise ConversionError("INVALID_INPUT", "actions must be strings or objects")
    try:
        kind = ActionKind(str(data.get("action", "")).strip().lower())
    except ValueError as exc:
        raise ConversionError("INVALID_INPUT", f"Unsupported action: {data.get('action')}") from exc

    if kind is ActionKind.RESIZE:
        width = _side(data.get("width"), "width", optional=True)
        height = _side(data.get("height"), "height", optional=True)
        if width is None and height is None:
            raise ConversionError("INVALID_INPUT", "resize needs width or height")
        return ActionRequest(kind, width, height)

    width = _side(data.get("width"), "width")
    height = _side(data.get("height"), "height")
    if kind is ActionKind.CROP:
        try:
            x, y = int(data.get("x", 0)), int(data.get("y", 0))
        except (TypeError, ValueError) as exc:
            raise ConversionError("INVALID_INPUT", "x and y must be integers") from exc
        return ActionRequest(kind, width, height, x=x, y=y)
    if kind is ActionKind.THUMBFILL:
        return ActionRequest(
            kind,
            width,
            height,
            center_x=_percent(data.get("centerX", 50), "centerX"),
            center_y=_percent(data.get("centerY", 50), "centerY"),
        )
    return ActionRequest(kind, width, height)


def _options(params: Dict[str, Any]) -> GraphicsOptions:
    try:
        quality = None if params.get("quality") is None else int(params["quality"])
        timeout = None if params.get("timeout") is None else float(params["timeout"])
    except (TypeError, ValueError) as exc:
        raise ConversionError("INVALID_INPUT", "quality and timeout must be numbers") from exc
    if quality is not None and not 0 <= quality <= 100:
        raise ConversionError("INVALID_INPUT", "quality must be between 0 and 100")
    if timeout is not None and timeout < 0:
        raise ConversionError("INVALID_INPUT", "timeout must be >= 0")
    return options_from_env().merged(
        executable=params.get("executable"),
        background=params.get("background"),
        quality=quality,
        optimize=params.get("optimize"),
        timeout=timeout,
    )


def _first_line(text: str) -> str:
    lines = text.strip().splitlines()
    return lines[0] if lines else ""


def _exif_orientation(path: Path) -> int | None:
    try:
        with Image.open(path) as image:
            value = image.getexif().get(274)
            return int(value) if value else None
    except (OSError, ValueError):
        return None


def _render(params: Dict[str, Any]) -> Dict[str, Any]:
    image = _require_path(str(params.get("image", "")))
    output = str(params.get("output", "")).strip()
    if not output:
        raise ConversionError("INVALID_INPUT", "output is required")
    raw_actions = params.get("actions") or []
    if not isinstance(raw_actions, list):
        raise ConversionError("INVALID_INPUT", "actions must be a list")

    graphics = Graphics(_options(params))
    for raw in raw_actions:
        graphics.add_action(parse_action(raw))
    if params.get("dryRun"):
        return graphics.plan(image, output).to_dict()
    return graphics.render(image, output).to_dict()


def _single_action(action: str, params: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(params)
    merged["actions"] = [{**params, "action": action}]
    return _render(merged)


def handle_method(method: str, params: Dict[str, Any]) -> Dict[str, Any]:
    if method == "system.version":
        return {"packageVersion": __version__}
    if method == "system.actions":
        return {"actions": ACTION_METHODS, "imageActions": [kind.value for kind in ActionKind]}
    if method == "system.doctor":
        options = _options(params)
        try:
            toolchain = resolve_toolchain(options.executable, options.identify)
        except ConversionError as exc:
            return {"healthy": False, "issues": [exc.message]}
        proc = run_process([*toolchain.convert, "-version"], timeout_seconds=15)
        data = {
            "healthy": proc.ok,
            "backend": toolchain.backend,
            "convert": toolchain.convert,
            "identify": toolchain.identify,
            "magickVersionRaw": _first_line(proc.stdout_text() or proc.stderr_text()),
            "issues": [] if proc.ok else ["Unable to run convert -version"],
        }
        if params.get("verbose"):
            data["runtime"] = {
                "pythonExecutable": sys.executable,
                "modulePath": str(Path(__file__).resolve()),
                "timeout": options.timeout,
                "background": options.background,
            }
        return data
    if method == "image.inspect":
        image = _require_path(str(params.get("image", "")))
        options = _options(params)
        identify = resolve_toolchain(options.executable, options.identify).identify
        width, height = probe_size(identify, image, options.timeout)
        return {
            "image": str(image),
            "width": width,
            "height": height,
            "canRead": can_read(image.suffix),
            "exifOrientation": _exif_orientation(image),
        }
    if method == "image.can_read":
        extension = str(params.get("extension", "")).strip()
        if not extension:
            raise ConversionError("INVALID_INPUT", "extension is required")
        return {"extension": extension, "canRead": can_read(extension)}
    if method == "image.render":
        return _render(params)
    if method in {"image.crop", "image.resize", "image.thumb", "image.thumbfill"}:
        return _single_action(method.split(".", 1)[1], params)
    raise ConversionError("INVALID_INPUT", f"Unsupported method: {method}")
