import json
from pathlib import Path

from typer.testing import CliRunner

from harness_magick import graphics
from harness_magick.cli import main as cli_main
from harness_magick.core.magick import Toolchain
from harness_magick.core.process import ProcessResult
from harness_magick.protocol import ERROR_CODES, PROTOCOL_VERSION

runner = CliRunner()


def test_version_envelope() -> None:
    result = runner.invoke(cli_main.app, ["version"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["ok"] is True
    assert payload["protocolVersion"] == PROTOCOL_VERSION
    assert payload["data"]["packageVersion"]


def test_can_read_command() -> None:
    result = runner.invoke(cli_main.app, ["can-read", "tiff"])
    assert json.loads(result.stdout)["data"]["canRead"] is True


def test_invalid_action_exits_with_mapped_code(make_image, tmp_path: Path) -> None:  # noqa: ANN001
    image = make_image("in.png", (20, 20))
    result = runner.invoke(cli_main.app, ["render", str(image), str(tmp_path / "out.png"), "-a", "spin-10x10"])
    assert result.exit_code == ERROR_CODES["INVALID_INPUT"]
    payload = json.loads(result.stdout)
    assert payload["ok"] is False
    assert payload["error"]["code"] == "INVALID_INPUT"


def test_render_dry_run_keeps_action_order(monkeypatch, make_image, tmp_path: Path) -> None:  # noqa: ANN001
    chain = Toolchain(convert=["convert"], identify=["identify"])
    monkeypatch.setattr(graphics, "resolve_toolchain", lambda executable=None, identify=None: chain)
    image = make_image("in.png", (500, 400))
    result = runner.invoke(
        cli_main.app,
        [
            "render",
            str(image),
            str(tmp_path / "out.png"),
            "-a",
            "resize-250xX",
            "-a",
            "crop-100x100+20+0",
            "--dry-run",
        ],
    )
    assert result.exit_code == 0, result.stdout
    data = json.loads(result.stdout)["data"]
    assert (data["width"], data["height"]) == (100, 100)
    command = data["command"]
    assert command.index("'250x200!'") < command.index("'100x100+20+0!'")


def test_timeout_is_retryable(monkeypatch, make_image, tmp_path: Path) -> None:  # noqa: ANN001
    chain = Toolchain(convert=["convert"], identify=["identify"])
    monkeypatch.setattr(graphics, "resolve_toolchain", lambda executable=None, identify=None: chain)
    monkeypatch.setattr(
        graphics,
        "run_process",
        lambda cmd, timeout_seconds=0: ProcessResult(-9, b"", b"", timed_out=True),
    )
    image = make_image("in.png", (50, 50))
    result = runner.invoke(
        cli_main.app,
        ["thumb", str(image), str(tmp_path / "out.png"), "--width", "20", "--height", "20", "--timeout", "1"],
    )
    assert result.exit_code == ERROR_CODES["TIMEOUT"]
    error = json.loads(result.stdout)["error"]
    assert error["code"] == "TIMEOUT"
    assert error["retryable"] is True
