"""FFmpeg command construction and invocation for transcode and merge.

Transcode re-encodes only the audio stream of one file, copying everything
else (artwork, tags). Merge concatenates all inputs with the concat demuxer,
takes global tags and artwork from the first file, swaps in a generated
chapter table, and writes an MP4-family container with stream copy.
"""

from __future__ import annotations

import shutil
import tempfile
import threading
from collections.abc import Callable, Sequence
from pathlib import Path

from loguru import logger

from .chapters import MetadataBundle
from .models import EncodingTarget
from .process import run_tool

log = logger.bind(stage="ffmpeg")


def build_convert_command(
    input_path: Path,
    output_path: Path,
    target: EncodingTarget,
    ffmpeg_bin: str = "ffmpeg",
) -> list[str]:
    cmd = [
        ffmpeg_bin,
        "-y",
        "-nostdin",
        "-v", "error",
        "-i", str(input_path),
        "-map_metadata", "0",
        "-map", "0",
        "-c", "copy",
        "-c:a", target.codec.encoder,
    ]
    if target.bitrate is not None:
        cmd.extend(["-b:a", f"{target.bitrate}k"])
    cmd.append(str(output_path))
    return cmd


def transcode(
    input_path: Path,
    output_path: Path,
    target: EncodingTarget,
    cancel: threading.Event | None = None,
    ffmpeg_bin: str = "ffmpeg",
) -> None:
    """Re-encode the audio of input_path into output_path."""
    run_tool(
        build_convert_command(input_path, output_path, target, ffmpeg_bin),
        cancel=cancel,
    )


def write_concat_list(paths: Sequence[Path], dest: Path) -> None:
    """Write an ffmpeg concat demuxer file listing paths in order."""
    lines = []
    for path in paths:
        # Escape single quotes: path.replace("'", "'\\''")
        escaped = str(path).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    dest.write_text("\n".join(lines) + "\n")


def _escape_ffmetadata(value: str) -> str:
    for ch in ("\\", "=", ";", "#", "\n"):
        value = value.replace(ch, "\\" + ch)
    return value


def write_ffmetadata(bundle: MetadataBundle, dest: Path) -> None:
    """Write the bundle's chapter table as an FFMETADATA1 file."""
    lines = [";FFMETADATA1", ""]
    for chapter in bundle.chapters:
        lines.extend(
            [
                "[CHAPTER]",
                "TIMEBASE=1/1000",
                f"START={round(chapter.start * 1000)}",
                f"END={round(chapter.end * 1000)}",
                f"title={_escape_ffmetadata(chapter.title)}",
                "",
            ]
        )
    dest.write_text("\n".join(lines))


def build_merge_command(
    list_file: Path,
    first_file: Path,
    metadata_file: Path,
    bundle: MetadataBundle,
    output_path: Path,
    ffmpeg_bin: str = "ffmpeg",
) -> list[str]:
    """Build the merge command.

    Inputs: 0 = concatenated audio, 1 = first file (tags + artwork),
    2 = generated chapter table.
    """
    cmd = [
        ffmpeg_bin,
        "-y",
        "-nostdin",
        "-v", "error",
        "-f", "concat",
        "-safe", "0",
        "-i", str(list_file),
        "-i", str(first_file),
        "-i", str(metadata_file),
        "-map_metadata", "1",
        "-map_chapters", "2",
        "-map", "0:a",
        "-map", "1:v:0?",
        "-c", "copy",
        # track number is meaningless for a merged work
        "-metadata", "track=",
    ]
    for key, value in bundle.tags.items():
        cmd.extend(["-metadata", f"{key}={value}"])
    cmd.extend(
        [
            "-f", "mp4",
            "-progress", "pipe:1",
            "-nostats",
            str(output_path),
        ]
    )
    return cmd


def parse_progress_line(line: str) -> float | None:
    """Extract muxed seconds from an ffmpeg -progress line, if present.

    Both out_time_us and out_time_ms carry microseconds.
    """
    key, sep, value = line.strip().partition("=")
    if not sep or key not in ("out_time_us", "out_time_ms"):
        return None
    try:
        return max(int(value), 0) / 1_000_000
    except ValueError:
        return None


def concat(
    paths: Sequence[Path],
    bundle: MetadataBundle,
    output_path: Path,
    on_progress: Callable[[float], None] | None = None,
    cancel: threading.Event | None = None,
    ffmpeg_bin: str = "ffmpeg",
    work_dir: Path | None = None,
) -> None:
    """Merge paths into output_path with the bundle's chapters and tags."""
    helper_dir = Path(tempfile.mkdtemp(prefix="m4b-merge-", dir=work_dir))
    try:
        list_file = helper_dir / "files.txt"
        metadata_file = helper_dir / "metadata.txt"
        write_concat_list(paths, list_file)
        write_ffmetadata(bundle, metadata_file)
        log.debug(
            f"Wrote {len(paths)} entries to files.txt, "
            f"{len(bundle.chapters)} chapters to metadata.txt"
        )

        def _on_line(line: str) -> None:
            elapsed = parse_progress_line(line)
            if elapsed is not None and on_progress is not None:
                on_progress(elapsed)

        run_tool(
            build_merge_command(
                list_file, paths[0], metadata_file, bundle, output_path, ffmpeg_bin
            ),
            cancel=cancel,
            on_line=_on_line,
        )
    finally:
        shutil.rmtree(helper_dir, ignore_errors=True)
