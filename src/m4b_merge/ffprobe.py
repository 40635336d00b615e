"""FFprobe wrapper for inspecting input audio files."""

from __future__ import annotations

import json
import threading
from pathlib import Path

from .errors import ProbeError
from .models import Chapter, ProbeInfo
from .process import run_tool


def _run_ffprobe(
    file: Path, cancel: threading.Event | None, ffprobe_bin: str
) -> dict:
    """Run ffprobe once for format, streams, and chapters as JSON."""
    output = run_tool(
        [
            ffprobe_bin,
            "-v", "error",
            "-show_format",
            "-show_streams",
            "-show_chapters",
            "-of", "json",
            str(file),
        ],
        cancel=cancel,
    )
    try:
        return json.loads(output)
    except json.JSONDecodeError as e:
        raise ProbeError(f"ffprobe returned invalid JSON for {file}") from e


def _to_kbps(value) -> int:
    try:
        return int(value) // 1000
    except (TypeError, ValueError):
        return 0


def _parse_chapters(raw: list[dict]) -> tuple[Chapter, ...]:
    chapters = []
    for entry in raw:
        chapters.append(
            Chapter(
                start=float(entry.get("start_time", 0.0)),
                end=float(entry.get("end_time", 0.0)),
                title=entry.get("tags", {}).get("title", ""),
            )
        )
    return tuple(chapters)


def parse_probe_output(file: Path, data: dict) -> ProbeInfo:
    """Build a ProbeInfo from ffprobe JSON output.

    Codec and bitrate come from the first audio stream. Bitrate falls back
    to the container bitrate (FLAC streams usually report none).
    Raises ProbeError if there is no audio stream or no duration.
    """
    streams = data.get("streams", [])
    audio = [s for s in streams if s.get("codec_type") == "audio"]
    if not audio:
        raise ProbeError(f"No audio stream found in {file}")

    fmt = data.get("format", {})
    duration = fmt.get("duration") or audio[0].get("duration")
    if not duration:
        raise ProbeError(f"ffprobe returned empty duration for {file}")

    bitrate = _to_kbps(audio[0].get("bit_rate")) or _to_kbps(fmt.get("bit_rate"))

    return ProbeInfo(
        duration=float(duration),
        codec=audio[0].get("codec_name", ""),
        bitrate=bitrate,
        chapters=_parse_chapters(data.get("chapters", [])),
        has_video=any(s.get("codec_type") == "video" for s in streams),
    )


def probe(
    file: Path,
    cancel: threading.Event | None = None,
    ffprobe_bin: str = "ffprobe",
) -> ProbeInfo:
    """Inspect one audio file.

    Raises ExternalToolError if ffprobe fails, ProbeError if its output is
    unusable, ToolCancelled if the run was cancelled.
    """
    return parse_probe_output(file, _run_ffprobe(file, cancel, ffprobe_bin))


def duration_to_timestamp(seconds: float) -> str:
    """Convert seconds to HH:MM:SS."""
    total = int(seconds)
    h = total // 3600
    m = (total % 3600) // 60
    s = total % 60
    return f"{h:02d}:{m:02d}:{s:02d}"
