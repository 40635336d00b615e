"""Core enums, constants, and value types for the merge pipeline.

Enums:
    AudioCodec -- Supported output codecs (aac, mp3, flac). Probe-reported
                  names are mapped onto these via AudioCodec.parse().
    Stage      -- Pipeline stage (validate through cleanup). Also the
                  logger "stage" tag and status-line label.
    ErrorKind  -- User-facing failure taxonomy carried by Err outcomes.

Value types:
    Chapter        -- One chapter marker, file-relative seconds.
    ProbeInfo      -- What ffprobe told us about one file.
    SourceRecord   -- Immutable snapshot of one input (or its converted copy).
    EncodingTarget -- Codec + bitrate chosen for the whole run.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path


class AudioCodec(StrEnum):
    AAC = "aac"
    MP3 = "mp3"
    FLAC = "flac"

    @classmethod
    def parse(cls, name: str) -> AudioCodec | None:
        """Map a probe-reported codec name to a supported codec.

        ffprobe has reported MP3 audio as both "mp3" and "libmp3lame"
        depending on version, so both land on MP3.
        """
        return _CODEC_ALIASES.get(name.strip().lower())

    @property
    def is_lossy(self) -> bool:
        return self is not AudioCodec.FLAC

    @property
    def encoder(self) -> str:
        """ffmpeg encoder name for this codec."""
        return _ENCODERS[self]

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]


_CODEC_ALIASES: dict[str, AudioCodec] = {
    "aac": AudioCodec.AAC,
    "mp3": AudioCodec.MP3,
    "libmp3lame": AudioCodec.MP3,
    "flac": AudioCodec.FLAC,
}

_ENCODERS: dict[AudioCodec, str] = {
    AudioCodec.AAC: "aac",
    AudioCodec.MP3: "libmp3lame",
    AudioCodec.FLAC: "flac",
}

_EXTENSIONS: dict[AudioCodec, str] = {
    AudioCodec.AAC: ".m4a",
    AudioCodec.MP3: ".mp3",
    AudioCodec.FLAC: ".flac",
}

# Intermediate files re-encoded from an .m4b keep an MP4-family container
MP4_EXTENSION = ".mp4"
M4B_EXTENSION = ".m4b"


class Stage(StrEnum):
    VALIDATE = "validate"
    LOAD = "load"
    METADATA = "metadata"
    SELECT = "select"
    CONVERT = "convert"
    MERGE = "merge"
    CLEANUP = "cleanup"


class ErrorKind(StrEnum):
    INVALID_ARGUMENTS = "invalid_arguments"
    OUTPUT_ALREADY_EXISTS = "output_already_exists"
    FILE_NOT_FOUND = "file_not_found"
    PROBE_FAILURE = "probe_failure"
    UNSUPPORTED_CODEC = "unsupported_codec"
    BITRATE_REQUIRED = "bitrate_required"
    CONVERSION_FAILURE = "conversion_failure"
    MERGE_FAILURE = "merge_failure"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Chapter:
    """A chapter marker. Times are seconds relative to the owning file."""

    start: float
    end: float
    title: str


@dataclass(frozen=True)
class ProbeInfo:
    duration: float
    codec: str
    bitrate: int  # kbps, 0 when unknown
    chapters: tuple[Chapter, ...] = ()
    has_video: bool = False


@dataclass(frozen=True)
class SourceRecord:
    """One logical input file.

    Records are never changed in place. The convert stage swaps a record for
    a new one (dataclasses.replace) pointing at a temporary re-encoded copy
    with is_temporary set; cleanup deletes exactly those files.
    """

    path: Path
    duration: float
    codec: str
    bitrate: int = 0
    is_container_m4b: bool = False
    is_temporary: bool = False
    chapters: tuple[Chapter, ...] | None = None

    def __post_init__(self) -> None:
        if self.duration < 0:
            raise ValueError(f"Negative duration for {self.path}: {self.duration}")
        if self.chapters:
            starts = [c.start for c in self.chapters]
            if any(a >= b for a, b in zip(starts, starts[1:])):
                raise ValueError(f"Chapter starts not increasing in {self.path}")
            if starts[-1] > self.duration:
                raise ValueError(
                    f"Chapter at {starts[-1]}s is past the end of {self.path} "
                    f"({self.duration}s)"
                )


@dataclass(frozen=True)
class EncodingTarget:
    """Codec and bitrate (kbps) every input must share before merging."""

    codec: AudioCodec
    bitrate: int | None = None

    def __post_init__(self) -> None:
        if self.codec.is_lossy and self.bitrate is None:
            raise ValueError(f"Lossy codec {self.codec} requires a bitrate")
        if not self.codec.is_lossy and self.bitrate is not None:
            raise ValueError(f"Lossless codec {self.codec} cannot carry a bitrate")

    def describe(self) -> str:
        if self.bitrate is None:
            return str(self.codec)
        return f"{self.bitrate}k {self.codec}"
