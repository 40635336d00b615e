"""Pipeline runner -- drives the merge stages in order."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from pathlib import Path

import click
from loguru import logger

from .chapters import MetadataBundle
from .config import MergeConfig
from .ffprobe import duration_to_timestamp
from .models import ErrorKind, SourceRecord, Stage
from .outcome import Err
from .selector import select_target
from .stages import cleanup, convert, load, merge, metadata, validate

log = logger.bind(stage="runner")

EXIT_OK = 0
EXIT_FAILURE = 1


class MergeRunner:
    """Runs validate -> load -> metadata -> select -> convert -> merge -> cleanup.

    Any stage failure ends the run with exit code 1 after its diagnostics
    are printed. Once conversion has produced temporary files, cleanup runs
    whether or not the merge succeeds.

    With show_progress, conversion and merge progress are redrawn in place
    on one stderr line. The line is always terminated before anything else
    is printed.
    """

    def __init__(
        self,
        config: MergeConfig,
        confirm_overwrite: Callable[[Path], bool] | None = None,
        show_progress: bool = False,
    ) -> None:
        self.config = config
        self.confirm_overwrite = confirm_overwrite
        self.show_progress = show_progress
        self._status_open = False

    def _fail(self, err: Err) -> int:
        err.report(self.config.verbose)
        return EXIT_FAILURE

    def _display_status(self, stage: Stage, text: str) -> None:
        if not self.show_progress:
            return
        click.echo(f"\r  {stage.upper()}: {text}", nl=False, err=True)
        self._status_open = True

    def _end_status_line(self) -> None:
        if self._status_open:
            click.echo("", err=True)
            self._status_open = False

    def _on_converted(self, done: int, total: int) -> None:
        self._display_status(Stage.CONVERT, f"{done}/{total}")
        if done == total:
            self._end_status_line()

    def run(
        self,
        paths: Sequence[str],
        output_path: str | None,
        cancel: threading.Event | None = None,
    ) -> int:
        """Merge paths into output_path. Returns the process exit code."""
        if cancel is None:
            cancel = threading.Event()

        validated = validate.run(
            paths,
            output_path,
            confirm_overwrite=self.confirm_overwrite,
            force=self.config.force,
        )
        if isinstance(validated, Err):
            if validated.kind == ErrorKind.OUTPUT_ALREADY_EXISTS:
                # User declined the overwrite -- nothing to do, not an error
                log.warning(f"{validated.message}, not overwriting")
                return EXIT_OK
            return self._fail(validated)
        output = validated.value

        loaded = load.run(paths, self.config, cancel)
        if isinstance(loaded, Err):
            return self._fail(loaded)
        records = loaded.value

        total_length = sum(r.duration for r in records)
        bundle = metadata.run(records, self.config.metadata)
        click.echo(
            f"  {Stage.LOAD.upper()}: {len(records)} files, total length "
            f"{duration_to_timestamp(total_length)}"
        )

        target = select_target(records, self.config.codec, self.config.bitrate)
        if isinstance(target, Err):
            return self._fail(target)
        log.info(f"Target codec: {target.value.describe()}")

        try:
            converted = convert.run(
                records,
                target.value,
                self.config,
                cancel,
                on_converted=self._on_converted,
            )
        finally:
            self._end_status_line()
        if isinstance(converted, Err):
            return self._fail(converted)
        records = converted.value

        count = sum(1 for r in records if r.is_temporary)
        if count:
            click.echo(
                f"  {Stage.CONVERT.upper()}: converted {count} "
                f"file{'s' if count != 1 else ''}"
            )

        return self._merge(records, bundle, output, total_length, cancel)

    def _merge(
        self,
        records: list[SourceRecord],
        bundle: MetadataBundle,
        output: Path,
        total_length: float,
        cancel: threading.Event,
    ) -> int:
        total = duration_to_timestamp(total_length)

        def _progress(elapsed: float) -> None:
            self._display_status(Stage.MERGE, f"{duration_to_timestamp(elapsed)}/{total}")

        try:
            merged = merge.run(
                records,
                bundle,
                output,
                self.config,
                cancel=cancel,
                on_progress=_progress,
            )
        finally:
            self._end_status_line()
            cleanup.run(records)

        if isinstance(merged, Err):
            return self._fail(merged)

        click.echo(
            f"  {Stage.MERGE.upper()}: successfully merged {len(records)} files to {output}"
        )
        return EXIT_OK
