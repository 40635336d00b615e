"""Load stage -- probe every input concurrently into SourceRecords."""

from __future__ import annotations

import functools
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from ..concurrency import run_parallel
from ..errors import MergeError, ToolCancelled
from ..ffprobe import probe
from ..models import M4B_EXTENSION, ErrorKind, SourceRecord, Stage
from ..outcome import Err, Ok, Outcome, partition

if TYPE_CHECKING:
    from ..config import MergeConfig

log = logger.bind(stage=Stage.LOAD)


def load_file(
    path: str,
    cancel: threading.Event | None = None,
    ffprobe_bin: str = "ffprobe",
) -> Outcome[SourceRecord]:
    """Probe one input path into a SourceRecord."""
    full_path = Path(path).resolve()

    if not full_path.is_file():
        return Err(f"File not found: {full_path}", ErrorKind.FILE_NOT_FOUND)

    try:
        info = probe(full_path, cancel=cancel, ffprobe_bin=ffprobe_bin)
        # Rejects chapter tables that are out of order or run past the end
        record = SourceRecord(
            path=full_path,
            duration=info.duration,
            codec=info.codec,
            bitrate=info.bitrate,
            is_container_m4b=full_path.suffix.lower() == M4B_EXTENSION,
            chapters=info.chapters or None,
        )
    except ToolCancelled as e:
        return Err(f"Cancelled while reading file: {full_path}", ErrorKind.CANCELLED, e)
    except (MergeError, OSError, ValueError) as e:
        return Err(f"Unable to read file: {full_path}", ErrorKind.PROBE_FAILURE, e)

    log.debug(
        f"Loaded {full_path.name}: codec={info.codec} bitrate={info.bitrate}k "
        f"duration={info.duration:.2f}s chapters={len(info.chapters)}"
    )
    return Ok(record)


def run(
    paths: Sequence[str],
    config: MergeConfig,
    cancel: threading.Event | None = None,
) -> Outcome[list[SourceRecord]]:
    """Load every path; succeed only if all of them loaded.

    All probes run to completion before any failure is reported, and every
    failure is reported.
    """
    loader = functools.partial(load_file, cancel=cancel, ffprobe_bin=config.ffprobe_bin)
    records, errors = partition(run_parallel(loader, paths, config.max_workers))

    if errors:
        for err in errors:
            err.report(config.verbose)
        return Err(
            f"Failed to load {len(errors)} of {len(paths)} files",
            errors[0].kind,
        )

    return Ok(records)
