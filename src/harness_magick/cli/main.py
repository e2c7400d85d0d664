import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from harness_magick import __version__
from harness_magick.core.errors import ConversionError
from harness_magick.operations import handle_method
from harness_magick.protocol import ERROR_CODES, PROTOCOL_VERSION

app = typer.Typer(add_completion=False, help="ImageMagick crop/resize/thumbnail renderer")


def _print(payload: Dict[str, Any]) -> None:
    typer.echo(json.dumps(payload, indent=2))


def _ok(command: str, data: Dict[str, Any]) -> None:
    _print({"ok": True, "protocolVersion": PROTOCOL_VERSION, "command": command, "data": data})


def _fail(command: str, code: str, message: str, retryable: bool = False) -> None:
    _print(
        {
            "ok": False,
            "protocolVersion": PROTOCOL_VERSION,
            "command": command,
            "error": {"code": code, "message": message, "retryable": retryable},
        }
    )
    raise SystemExit(ERROR_CODES.get(code, 1))


def _call(command: str, method: str, params: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return handle_method(method, params)
    except ConversionError as exc:
        _fail(command, exc.code, exc.message, retryable=exc.code in {"TIMEOUT", "LOCKED"})
    except OSError as exc:
        _fail(command, "ERROR", str(exc))
    raise RuntimeError("unreachable")


def _render_params(
    image: Path,
    output: Path,
    background: Optional[str],
    quality: Optional[int],
    optimize: Optional[bool],
    timeout: Optional[float],
    dry_run: bool,
) -> Dict[str, Any]:
    return {
        "image": str(image),
        "output": str(output),
        "background": background,
        "quality": quality,
        "optimize": optimize,
        "timeout": timeout,
        "dryRun": dry_run,
    }


@app.callback()
def configure(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to stderr")) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


@app.command("actions")
def actions() -> None:
    _ok("actions", _call("actions", "system.actions", {}))


@app.command("doctor")
def doctor(verbose: bool = typer.Option(False, "--verbose")) -> None:
    data = _call("doctor", "system.doctor", {"verbose": verbose})
    _ok("doctor", data)
    if not data.get("healthy", False):
        raise SystemExit(ERROR_CODES["MAGICK_NOT_FOUND"])


@app.command("inspect")
def inspect_image(image: Path, timeout: Optional[float] = typer.Option(None, "--timeout")) -> None:
    _ok("inspect", _call("inspect", "image.inspect", {"image": str(image), "timeout": timeout}))


@app.command("can-read")
def can_read(extension: str) -> None:
    _ok("can-read", _call("can-read", "image.can_read", {"extension": extension}))


@app.command("render")
def render_image(
    image: Path,
    output: Path,
    action: List[str] = typer.Option([], "--action", "-a", help="e.g. crop-100x100+10+10, resize-200xX, thumbfill-200x100@50,0"),
    background: Optional[str] = typer.Option(None, "--background"),
    quality: Optional[int] = typer.Option(None, "--quality", min=0, max=100),
    optimize: Optional[bool] = typer.Option(None, "--optimize/--no-optimize"),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0),
    dry_run: bool = typer.Option(False, "--dry-run"),
) -> None:
    params = _render_params(image, output, background, quality, optimize, timeout, dry_run)
    params["actions"] = list(action)
    _ok("render", _call("render", "image.render", params))


@app.command("crop")
def crop_image(
    image: Path,
    output: Path,
    width: int = typer.Option(..., "--width"),
    height: int = typer.Option(..., "--height"),
    x: int = typer.Option(0, "--x"),
    y: int = typer.Option(0, "--y"),
    background: Optional[str] = typer.Option(None, "--background"),
    quality: Optional[int] = typer.Option(None, "--quality", min=0, max=100),
    optimize: Optional[bool] = typer.Option(None, "--optimize/--no-optimize"),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0),
    dry_run: bool = typer.Option(False, "--dry-run"),
) -> None:
    params = _render_params(image, output, background, quality, optimize, timeout, dry_run)
    params.update({"width": width, "height": height, "x": x, "y": y})
    _ok("crop", _call("crop", "image.crop", params))


@app.command("resize")
def resize_image(
    image: Path,
    output: Path,
    width: Optional[int] = typer.Option(None, "--width"),
    height: Optional[int] = typer.Option(None, "--height"),
    background: Optional[str] = typer.Option(None, "--background"),
    quality: Optional[int] = typer.Option(None, "--quality", min=0, max=100),
    optimize: Optional[bool] = typer.Option(None, "--optimize/--no-optimize"),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0),
    dry_run: bool = typer.Option(False, "--dry-run"),
) -> None:
    params = _render_params(image, output, background, quality, optimize, timeout, dry_run)
    params.update({"width": width, "height": height})
    _ok("resize", _call("resize", "image.resize", params))


@app.command("thumb")
def thumb_image(
    image: Path,
    output: Path,
    width: int = typer.Option(..., "--width"),
    height: int = typer.Option(..., "--height"),
    background: Optional[str] = typer.Option(None, "--background"),
    quality: Optional[int] = typer.Option(None, "--quality", min=0, max=100),
    optimize: Optional[bool] = typer.Option(None, "--optimize/--no-optimize"),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0),
    dry_run: bool = typer.Option(False, "--dry-run"),
) -> None:
    params = _render_params(image, output, background, quality, optimize, timeout, dry_run)
    params.update({"width": width, "height": height})
    _ok("thumb", _call("thumb", "image.thumb", params))


@app.command("thumbfill")
def thumbfill_image(
    image: Path,
    output: Path,
    width: int = typer.Option(..., "--width"),
    height: int = typer.Option(..., "--height"),
    center_x: float = typer.Option(50, "--center-x", min=0, max=100),
    center_y: float = typer.Option(50, "--center-y", min=0, max=100),
    background: Optional[str] = typer.Option(None, "--background"),
    quality: Optional[int] = typer.Option(None, "--quality", min=0, max=100),
    optimize: Optional[bool] = typer.Option(None, "--optimize/--no-optimize"),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=0),
    dry_run: bool = typer.Option(False, "--dry-run"),
) -> None:
    params = _render_params(image, output, background, quality, optimize, timeout, dry_run)
    params.update({"width": width, "height": height, "centerX": center_x, "centerY": center_y})
    _ok("thumbfill", _call("thumbfill", "image.thumbfill", params))


@app.command("version")
def version() -> None:
    _ok("version", {"packageVersion": __version__, "protocolVersion": PROTOCOL_VERSION})


def main() -> None:
    app()
