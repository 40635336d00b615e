"""CLI entry point for m4b-merge."""

import signal
import sys
import threading
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

import click
from loguru import logger

from .config import MergeConfig
from .models import AudioCodec
from .runner import MergeRunner

log = logger.bind(stage="cli")


def _get_version() -> str:
    try:
        return version("m4b-merge")
    except PackageNotFoundError:
        return "0.0.0"


def _parse_metadata(
    ctx: click.Context, param: click.Parameter, values: tuple[str, ...]
) -> dict[str, str]:
    """Turn repeated key=value options into a dict (later keys win)."""
    entries: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise click.BadParameter(f"expected key=value, got {item!r}")
        entries[key.strip()] = value
    return entries


def _confirm_overwrite(output: Path) -> bool:
    return click.confirm(
        f"Output file {output} already exists, overwrite?", default=False
    )


@click.command()
@click.argument("paths", nargs=-1, type=click.Path(dir_okay=False))
@click.option("-o", "--output", "output_path", default=None, help="Output file path.")
@click.option(
    "-c",
    "--codec",
    type=click.Choice([c.value for c in AudioCodec]),
    default=None,
    help="Output audio codec override. Majority input codec if omitted.",
)
@click.option(
    "-b",
    "--bitrate",
    type=click.IntRange(min=1),
    default=None,
    help="Output bitrate in kb/s -- required if a lossy codec is specified.",
)
@click.option(
    "-m",
    "--metadata",
    multiple=True,
    callback=_parse_metadata,
    metavar="KEY=VALUE",
    help="Extra metadata tag for the output file (repeatable). "
    "Only tag keys known to ffmpeg are supported.",
)
@click.option("--force", is_flag=True, help="Overwrite the output without asking.")
@click.option("--debug", "verbose", is_flag=True, help="Enable debugging output.")
@click.option(
    "--env-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to .env file.",
)
@click.version_option(version=_get_version(), prog_name="m4b-merge")
def main(
    paths: tuple[str, ...],
    output_path: str | None,
    codec: str | None,
    bitrate: int | None,
    metadata: dict[str, str],
    force: bool,
    verbose: bool,
    env_file: str | None,
) -> None:
    """Merge audio files into a single chaptered M4B audiobook."""
    # Pass only flags that were given, so env/.env values survive
    config_kwargs: dict = {}
    if codec is not None:
        config_kwargs["codec"] = AudioCodec(codec)
    if bitrate is not None:
        config_kwargs["bitrate"] = bitrate
    if metadata:
        config_kwargs["metadata"] = metadata
    if force:
        config_kwargs["force"] = True
    if verbose:
        config_kwargs["verbose"] = True
    if env_file:
        config_kwargs["_env_file"] = env_file

    config = MergeConfig(**config_kwargs)
    config.setup_logging()

    click.echo(f"m4b-merge v{_get_version()}")
    log.debug(f"Starting merge: {len(paths)} inputs -> {output_path}")

    cancel = threading.Event()

    def _on_sigint(signum, frame) -> None:
        log.warning("Interrupted, cancelling running ffmpeg processes")
        cancel.set()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        runner = MergeRunner(
            config=config,
            confirm_overwrite=_confirm_overwrite,
            show_progress=True,
        )
        exit_code = runner.run(list(paths), output_path, cancel=cancel)
    finally:
        signal.signal(signal.SIGINT, previous)

    sys.exit(exit_code)
