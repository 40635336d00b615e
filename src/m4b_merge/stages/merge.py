"""Merge stage -- concatenate all records into the chaptered output."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from ..chapters import MetadataBundle
from ..errors import MergeError, ToolCancelled
from ..ffmpeg import concat
from ..models import ErrorKind, SourceRecord, Stage
from ..outcome import Err, Ok, Outcome

if TYPE_CHECKING:
    from ..config import MergeConfig

log = logger.bind(stage=Stage.MERGE)


def run(
    records: Sequence[SourceRecord],
    bundle: MetadataBundle,
    output_path: Path,
    config: MergeConfig,
    cancel: threading.Event | None = None,
    on_progress: Callable[[float], None] | None = None,
) -> Outcome[Path]:
    """Merge the records' files, in order, into output_path.

    The first file donates global tags and artwork; chapters and custom tags
    come from the bundle.
    """
    paths = [r.path for r in records]
    log.info(f"Merging {len(paths)} files into {output_path}")

    try:
        concat(
            paths,
            bundle,
            output_path,
            on_progress=on_progress,
            cancel=cancel,
            ffmpeg_bin=config.ffmpeg_bin,
            work_dir=config.work_dir,
        )
    except ToolCancelled as e:
        return Err("Merge cancelled", ErrorKind.CANCELLED, e)
    except (MergeError, OSError) as e:
        return Err("Failed to merge files", ErrorKind.MERGE_FAILURE, e)

    return Ok(output_path)
