"""Cleanup stage -- delete the temporary files made by the convert stage."""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from ..models import SourceRecord, Stage

log = logger.bind(stage=Stage.CLEANUP)


def remove_temporary(records: Iterable[SourceRecord]) -> int:
    """Delete every temporary record's file. Best-effort, never raises.

    Returns the number of files actually removed.
    """
    removed = 0
    for record in records:
        if not record.is_temporary:
            continue
        try:
            record.path.unlink()
        except FileNotFoundError:
            log.debug(f"Temporary file already gone: {record.path}")
        except OSError as e:
            log.warning(f"Failed to remove temporary file {record.path}: {e}")
        else:
            removed += 1
            log.debug(f"Removed temporary file: {record.path}")
    return removed


def run(records: Iterable[SourceRecord]) -> int:
    """Cleanup stage entry point -- runs after every merge attempt."""
    removed = remove_temporary(records)
    if removed:
        log.info(f"Removed {removed} temporary files")
    else:
        log.debug("Cleanup stage (no temporary files to remove)")
    return removed
