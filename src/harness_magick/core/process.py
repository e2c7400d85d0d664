import logging
import os
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from harness_magick.core.errors import ConversionTimeout, ExecutionError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    exit_status: int
    stdout: bytes
    stderr: bytes
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.exit_status == 0

    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


def _terminate(process: subprocess.Popen) -> None:
    # delegates (ghostscript for pdf/eps) share the child's session and pipes
    if os.name != "nt":
        try:
            os.killpg(process.pid, signal.SIGKILL)
            return
        except ProcessLookupError:
            return
        except PermissionError:
            pass
    process.kill()


def run_process(argv: Sequence[str], timeout_seconds: Optional[float] = 0) -> ProcessResult:
    """Run ``argv`` with stdout and stderr captured and a wall-clock limit.

    ``communicate`` drains both pipes concurrently, so a child that fills one
    pipe while the other stays idle cannot stall the reader. A timeout of 0 or
    None waits indefinitely. On expiry the child is killed and whatever it had
    written so far is still returned.
    """
    timeout = timeout_seconds if timeout_seconds and timeout_seconds > 0 else None
    logger.debug("exec %s (timeout=%s)", list(argv), timeout)
    try:
        process = subprocess.Popen(
            list(argv),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=os.name != "nt",
        )
    except FileNotFoundError as exc:
        raise ExecutionError(f"Executable not found: {argv[0]}", code="MAGICK_NOT_FOUND") from exc

    started = time.monotonic()
    timed_out = False
    try:
        stdout, stderr = process.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        timed_out = True
        _terminate(process)
        stdout, stderr = process.communicate()
        logger.debug("killed pid %s after %.2fs", process.pid, time.monotonic() - started)

    return ProcessResult(
        exit_status=process.returncode,
        stdout=stdout or b"",
        stderr=stderr or b"",
        timed_out=timed_out,
    )


def check_result(result: ProcessResult) -> ProcessResult:
    if result.timed_out:
        raise ConversionTimeout()
    if result.exit_status != 0:
        message = result.stderr_text().strip() or f"Process exited with status {result.exit_status}"
        raise ExecutionError(message)
    return result
