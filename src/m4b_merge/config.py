"""Merge configuration via pydantic-settings (.env + env vars)."""

import sys
import tempfile
from pathlib import Path

from loguru import logger
from pydantic import Field, PositiveInt
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import AudioCodec


class MergeConfig(BaseSettings):
    """All merge configuration with layered resolution:
    .env file < environment variables (M4B_MERGE_*) < constructor kwargs.
    """

    model_config = SettingsConfigDict(
        env_prefix="M4B_MERGE_",
        env_file=".env",
        extra="ignore",
    )

    # -- Encoding --
    codec: AudioCodec | None = None  # None = majority vote over inputs
    bitrate: PositiveInt | None = None  # kbps, required with a lossy codec override
    metadata: dict[str, str] = Field(default_factory=dict)

    # -- Behavior --
    force: bool = False
    verbose: bool = False
    log_level: str = "INFO"
    max_workers: int = 0  # 0 = one worker per file

    # -- Paths --
    log_dir: Path | None = None
    temp_dir: Path | None = None
    ffmpeg_bin: str = "ffmpeg"
    ffprobe_bin: str = "ffprobe"

    @property
    def work_dir(self) -> Path:
        """Directory for intermediate re-encoded files."""
        return self.temp_dir or Path(tempfile.gettempdir())

    def setup_logging(self) -> None:
        """Configure loguru for the merge run."""
        logger.remove()  # Remove default stderr handler

        log_format = (
            "{time:YYYY-MM-DDTHH:mm:ssZ} | {level:<8} | "
            "{extra[stage]:<8} | {message}"
        )

        def _default_extra(record):
            record["extra"].setdefault("stage", "")
            return True

        logger.add(
            sys.stderr,
            format=log_format,
            level="DEBUG" if self.verbose else self.log_level.upper(),
            filter=_default_extra,
        )

        if self.log_dir is None:
            return

        self.log_dir.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(self.log_dir / "m4b-merge.log"),
            format=log_format,
            level="DEBUG",
            rotation="10 MB",
            retention="30 days",
            filter=_default_extra,
        )
