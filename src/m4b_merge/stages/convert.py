"""Convert stage -- re-encode inputs that don't match the target codec.

Each mismatched file is transcoded into its own temporary file, all in
parallel. The stage only succeeds if every conversion does; otherwise the
temporary files that were produced are deleted before returning.
"""

from __future__ import annotations

import dataclasses
import os
import tempfile
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from ..concurrency import run_parallel
from ..errors import MergeError, ToolCancelled
from ..ffmpeg import transcode
from ..models import (
    MP4_EXTENSION,
    AudioCodec,
    EncodingTarget,
    ErrorKind,
    SourceRecord,
    Stage,
)
from ..outcome import Err, Ok, Outcome, partition
from ..selector import needs_conversion
from .cleanup import remove_temporary

if TYPE_CHECKING:
    from ..config import MergeConfig

log = logger.bind(stage=Stage.CONVERT)


def temp_extension(record: SourceRecord, codec: AudioCodec | str) -> str:
    """Pick the extension for a re-encoded copy of record.

    An .m4b source stays in an MP4-family container so its artwork and
    chapters survive; everything else uses the target codec's extension.
    """
    if record.is_container_m4b:
        return MP4_EXTENSION
    parsed = AudioCodec.parse(str(codec))
    if parsed is None:
        raise ValueError(f"Unsupported codec {codec}")
    return parsed.extension


def _make_temp_path(suffix: str, work_dir: Path) -> Path:
    fd, name = tempfile.mkstemp(prefix="m4b-merge-", suffix=suffix, dir=work_dir)
    os.close(fd)
    return Path(name)


def convert_file(
    record: SourceRecord,
    target: EncodingTarget,
    config: MergeConfig,
    cancel: threading.Event | None = None,
) -> Outcome[SourceRecord]:
    """Re-encode one record into a temporary file, or pass it through."""
    if not needs_conversion(record, target):
        return Ok(record)

    temp_path: Path | None = None
    try:
        temp_path = _make_temp_path(temp_extension(record, target.codec), config.work_dir)
        log.debug(f"Re-encoding {record.path} as {target.describe()} ({temp_path})")
        transcode(
            record.path,
            temp_path,
            target,
            cancel=cancel,
            ffmpeg_bin=config.ffmpeg_bin,
        )
    except (MergeError, OSError) as e:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        if isinstance(e, ToolCancelled):
            return Err(f"Cancelled while converting file: {record.path}", ErrorKind.CANCELLED, e)
        return Err(f"Failed to convert file: {record.path}", ErrorKind.CONVERSION_FAILURE, e)

    return Ok(
        dataclasses.replace(
            record,
            path=temp_path,
            codec=str(target.codec),
            is_temporary=True,
        )
    )


def run(
    records: Sequence[SourceRecord],
    target: EncodingTarget,
    config: MergeConfig,
    cancel: threading.Event | None = None,
    on_converted: Callable[[int, int], None] | None = None,
) -> Outcome[list[SourceRecord]]:
    """Bring every record to the target codec, preserving order.

    on_converted(done, pending) is called after each attempted re-encode,
    successful or not, so done reaches pending before any failure is
    reported.
    """
    pending = sum(1 for r in records if needs_conversion(r, target))
    log.info(f"{pending} of {len(records)} files need conversion to {target.describe()}")

    lock = threading.Lock()
    done = 0

    def _convert(record: SourceRecord) -> Outcome[SourceRecord]:
        nonlocal done
        outcome = convert_file(record, target, config, cancel)
        if on_converted is not None and needs_conversion(record, target):
            with lock:
                done += 1
                on_converted(done, pending)
        return outcome

    converted, errors = partition(run_parallel(_convert, records, config.max_workers))

    if errors:
        for err in errors:
            err.report(config.verbose)
        # Roll back the conversions that did succeed
        removed = remove_temporary(converted)
        log.debug(f"Rolled back {removed} temporary files")
        return Err(
            f"Failed to convert {len(errors)} of {pending} files",
            errors[0].kind,
        )

    return Ok(converted)
