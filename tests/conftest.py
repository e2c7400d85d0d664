from pathlib import Path
from typing import Callable, Tuple

import pytest
from PIL import Image

from harness_magick.core.magick import Toolchain


@pytest.fixture
def make_image(tmp_path: Path) -> Callable[..., Path]:
    def _make(name: str, size: Tuple[int, int], color=(200, 30, 30)) -> Path:
        path = tmp_path / name
        Image.new("RGB", size, color).save(path)
        return path

    return _make


@pytest.fixture
def toolchain() -> Toolchain:
    return Toolchain(convert=["convert"], identify=["identify"])


@pytest.fixture(autouse=True)
def clean_env(monkeypatch) -> None:  # noqa: ANN001
    for name in (
        "HARNESS_MAGICK_BIN",
        "HARNESS_MAGICK_IDENTIFY_BIN",
        "HARNESS_MAGICK_TIMEOUT",
        "HARNESS_MAGICK_BACKGROUND",
        "HARNESS_MAGICK_QUALITY",
        "HARNESS_MAGICK_OPTIMIZE",
    ):
        monkeypatch.delenv(name, raising=False)
