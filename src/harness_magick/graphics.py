"""ImageMagick rendering of queued crop/resize/thumb/thumbfill actions.

A :class:`Graphics` instance collects actions through the ``add_*`` methods
and turns them into a single ``convert`` call per :meth:`Graphics.render`::

    Graphics(GraphicsOptions(background="#FFFFFF")) \\
        .add_thumbfill(200, 100) \\
        .render("in.jpg", "out.png")

Each render is independent: the tracked size, command and process result live
only for the duration of the call.
"""

import fcntl
import logging
import os
import shutil
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Iterator, List, Optional, Union

from harness_magick.config import GraphicsOptions
from harness_magick.core.command import (
    build_convert_command,
    format_from_path,
    normalize_format,
    shell_command,
)
from harness_magick.core.errors import LockError, UnsupportedFormatError
from harness_magick.core.geometry import ActionKind, ActionRequest, PlanResult, Size, plan_actions
from harness_magick.core.magick import Toolchain, resolve_toolchain
from harness_magick.core.optimize import optimize_image
from harness_magick.core.probe import probe_size
from harness_magick.core.process import check_result, run_process

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

BASE_FORMATS = {"gif", "jpg", "png", "webp"}
EXTRA_FORMATS = {"tif", "pdf", "eps"}


@dataclass
class ConversionJob:
    input_path: Path
    output_path: Path
    input_format: str
    output_format: str
    background: str
    quality: int
    optimize: bool
    timeout: float
    size: Size = (0, 0)
    command: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RenderResult:
    input_path: str
    output_path: str
    width: int
    height: int
    command: str
    bypassed: bool = False
    optimized: bool = False

    def to_dict(self) -> dict:
        return {
            "input": self.input_path,
            "output": self.output_path,
            "width": self.width,
            "height": self.height,
            "command": self.command,
            "bypassed": self.bypassed,
            "optimized": self.optimized,
        }


def can_read(extension: str) -> bool:
    return normalize_format(extension) in BASE_FORMATS | EXTRA_FORMATS


@contextmanager
def render_lock(output_path: Path, timeout_seconds: float = 0) -> Iterator[bool]:
    """Hold an exclusive ``flock`` on ``<output>.lock`` for a render.

    Yields True when another render held the lock and this one had to wait.
    The kernel drops the lock when its holder dies, so a leftover lock file
    never blocks a later render. With a positive timeout, waiting longer
    than that raises :class:`LockError`.
    """
    lock_path = output_path.with_name(output_path.name + ".lock")
    deadline = time.monotonic() + timeout_seconds if timeout_seconds and timeout_seconds > 0 else None
    waited = False
    while True:
        handle = open(lock_path, "a+", encoding="ascii")
        try:
            waited = _acquire(handle, deadline) or waited
        except BaseException:
            handle.close()
            raise
        try:
            # the previous holder may have unlinked the file we locked
            if os.path.samestat(os.fstat(handle.fileno()), os.stat(lock_path)):
                break
        except FileNotFoundError:
            pass
        handle.close()

    try:
        handle.truncate(0)
        handle.write(str(os.getpid()))
        handle.flush()
        yield waited
    finally:
        lock_path.unlink(missing_ok=True)
        handle.close()


def _acquire(handle: IO[str], deadline: Optional[float]) -> bool:
    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        return False
    except BlockingIOError:
        pass
    logger.info("waiting for concurrent render holding %s", handle.name)
    if deadline is None:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        return True
    while True:
        time.sleep(0.05)
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            return True
        except BlockingIOError:
            if time.monotonic() >= deadline:
                raise LockError(f"Output is being rendered: {handle.name[:-len('.lock')]}") from None


class Graphics:
    def __init__(self, options: Optional[GraphicsOptions] = None, toolchain: Optional[Toolchain] = None):
        self.options = options or GraphicsOptions()
        self._toolchain = toolchain
        self.actions: List[ActionRequest] = []

    @property
    def toolchain(self) -> Toolchain:
        if self._toolchain is None:
            self._toolchain = resolve_toolchain(self.options.executable, self.options.identify)
        return self._toolchain

    def add_action(self, action: ActionRequest) -> "Graphics":
        self.actions.append(action)
        return self

    def add_crop(self, width: int, height: int, x: int = 0, y: int = 0) -> "Graphics":
        return self.add_action(ActionRequest(ActionKind.CROP, width, height, x=x, y=y))

    def add_resize(self, width: Optional[int], height: Optional[int]) -> "Graphics":
        return self.add_action(ActionRequest(ActionKind.RESIZE, width, height))

    def add_thumb(self, width: int, height: int) -> "Graphics":
        return self.add_action(ActionRequest(ActionKind.THUMB, width, height))

    def add_thumbfill(self, width: int, height: int, center_x: float = 50, center_y: float = 50) -> "Graphics":
        return self.add_action(
            ActionRequest(ActionKind.THUMBFILL, width, height, center_x=center_x, center_y=center_y)
        )

    def can_read(self, extension: str) -> bool:
        return can_read(extension)

    def _job(self, input_path: PathLike, output_path: PathLike) -> ConversionJob:
        source = Path(input_path)
        target = Path(output_path)
        input_format = format_from_path(source)
        if not self.can_read(input_format):
            raise UnsupportedFormatError(f"Unsupported input format: {source.suffix or source.name}")
        output_format = format_from_path(target) or input_format
        return ConversionJob(
            input_path=source,
            output_path=target,
            input_format=input_format,
            output_format=output_format,
            background=self.options.background,
            quality=self.options.quality_for(output_format),
            optimize=self.options.optimize,
            timeout=self.options.timeout,
        )

    def _plan(self, job: ConversionJob) -> PlanResult:
        source_size = probe_size(self.toolchain.identify, job.input_path, job.timeout)
        plan = plan_actions(self.actions, source_size)
        job.size = plan.size
        job.command = build_convert_command(
            self.toolchain.convert,
            job.input_path,
            job.output_path,
            plan,
            input_format=job.input_format,
            output_format=job.output_format,
            background=job.background,
            quality=job.quality,
        )
        return plan

    def _bypassed(self, job: ConversionJob, plan: PlanResult) -> bool:
        return plan.bypassed and job.input_format == job.output_format

    def _result(self, job: ConversionJob, bypassed: bool = False, optimized: bool = False) -> RenderResult:
        return RenderResult(
            input_path=str(job.input_path),
            output_path=str(job.output_path),
            width=job.size[0],
            height=job.size[1],
            command="" if bypassed else shell_command(job.command),
            bypassed=bypassed,
            optimized=optimized,
        )

    def plan(self, input_path: PathLike, output_path: PathLike) -> RenderResult:
        """Probe and plan without running ImageMagick."""
        job = self._job(input_path, output_path)
        plan = self._plan(job)
        return self._result(job, bypassed=self._bypassed(job, plan))

    def render(self, input_path: PathLike, output_path: PathLike) -> RenderResult:
        job = self._job(input_path, output_path)
        with render_lock(job.output_path, job.timeout) as waited:
            plan = self._plan(job)
            if waited and job.output_path.exists():
                logger.info("reusing %s rendered concurrently", job.output_path)
                return self._result(job, bypassed=True)
            if self._bypassed(job, plan):
                logger.debug("no geometry change for %s, copying", job.input_path)
                if job.input_path.resolve() != job.output_path.resolve():
                    shutil.copyfile(job.input_path, job.output_path)
                return self._result(job, bypassed=True)

            logger.debug("render %s", shell_command(job.command))
            check_result(run_process(job.command, job.timeout))

            optimized = False
            if job.optimize:
                optimized = optimize_image(job.output_path, job.timeout)

        logger.info("rendered %s -> %s (%dx%d)", job.input_path, job.output_path, *job.size)
        return self._result(job, optimized=optimized)
