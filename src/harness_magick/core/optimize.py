import logging
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from harness_magick.core.command import format_from_path
from harness_magick.core.process import run_process

logger = logging.getLogger(__name__)

# in-place optimisers, tried in order; the file path is appended last
OPTIMIZERS: Dict[str, Sequence[List[str]]] = {
    "jpg": (
        ["jpegoptim", "--quiet", "--strip-all", "--all-progressive"],
    ),
    "png": (
        ["optipng", "-quiet", "-o2"],
        ["pngcrush", "-ow", "-q"],
    ),
    "gif": (
        ["gifsicle", "--batch", "-O2"],
    ),
}


def optimizer_command(output_format: str) -> Optional[List[str]]:
    for candidate in OPTIMIZERS.get(output_format, ()):
        binary = shutil.which(candidate[0])
        if binary:
            return [binary, *candidate[1:]]
    return None


def optimize_image(path: Union[str, Path], timeout_seconds: float = 0) -> bool:
    """Losslessly shrink ``path`` in place with the first optimiser found.

    Returns False when no optimiser is installed for the format or the
    optimiser failed; the rendered file is left untouched in that case.
    """
    output_format = format_from_path(path)
    cmd = optimizer_command(output_format)
    if cmd is None:
        logger.debug("no optimiser available for %s", output_format)
        return False
    result = run_process([*cmd, str(path)], timeout_seconds)
    if not result.ok:
        logger.warning(
            "optimiser %s failed for %s: %s",
            Path(cmd[0]).name,
            path,
            "timeout" if result.timed_out else result.stderr_text().strip(),
        )
        return False
    return True
