"""Validation stage -- checks arguments before any file is touched."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path

from loguru import logger

from ..models import ErrorKind, Stage
from ..outcome import Err, Ok, Outcome

log = logger.bind(stage=Stage.VALIDATE)


def run(
    paths: Sequence[str],
    output_path: str | None,
    confirm_overwrite: Callable[[Path], bool] | None = None,
    force: bool = False,
) -> Outcome[Path]:
    """Validate inputs and output, returning the resolved output path.

    Fails on fewer than two inputs, a missing output path, or an output
    path that names one of the inputs. An existing output is only replaced
    with force or when confirm_overwrite agrees; otherwise the run stops
    with OUTPUT_ALREADY_EXISTS.
    """
    if len(paths) < 2:
        return Err("No input files provided (need at least 2)", ErrorKind.INVALID_ARGUMENTS)

    if not output_path:
        return Err("No output path provided", ErrorKind.INVALID_ARGUMENTS)

    output = Path(output_path).resolve()
    for p in paths:
        if p == output_path or Path(p).resolve() == output:
            return Err(
                "Output path cannot be the same as an input file",
                ErrorKind.INVALID_ARGUMENTS,
            )

    if output.exists():
        if force:
            log.debug(f"Overwriting existing output {output} (force)")
        elif confirm_overwrite is None or not confirm_overwrite(output):
            return Err(
                f"Output file {output} already exists",
                ErrorKind.OUTPUT_ALREADY_EXISTS,
            )

    log.debug(f"Validated {len(paths)} inputs -> {output}")
    return Ok(output)
