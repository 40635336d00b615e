"""Subprocess runner shared by the ffprobe and ffmpeg adapters.

Every external invocation in a run goes through run_tool() with the run's
cancel event. A set event stops new processes from launching and terminates
ones already running; callers still wait for the process to exit.
"""

from __future__ import annotations

import subprocess
import threading
from collections.abc import Callable, Sequence

from loguru import logger

from .errors import ExternalToolError, ToolCancelled

log = logger.bind(stage="process")

_CANCEL_POLL_SECONDS = 0.2


def _terminate_on_cancel(proc: subprocess.Popen, cancel: threading.Event) -> None:
    while proc.poll() is None:
        if cancel.wait(_CANCEL_POLL_SECONDS):
            log.debug(f"Cancel requested, terminating pid {proc.pid}")
            proc.terminate()
            return


def run_tool(
    cmd: Sequence[str],
    cancel: threading.Event | None = None,
    on_line: Callable[[str], None] | None = None,
) -> str:
    """Run an external tool and return its stdout.

    stdout is streamed line by line to on_line (if given) while the process
    runs. stderr is captured for diagnostics.

    Raises ToolCancelled if cancel is set before launch or while running,
    ExternalToolError on a non-zero exit status.
    """
    tool = cmd[0]
    if cancel is not None and cancel.is_set():
        raise ToolCancelled(tool)

    log.debug(f"Running: {' '.join(cmd)}")

    stdout_lines: list[str] = []
    stderr_chunks: list[str] = []

    with subprocess.Popen(
        list(cmd),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
    ) as proc:
        # Drain stderr separately so a chatty tool can't block on a full pipe
        stderr_reader = threading.Thread(
            target=lambda: stderr_chunks.append(proc.stderr.read()),
            daemon=True,
        )
        stderr_reader.start()

        if cancel is not None:
            threading.Thread(
                target=_terminate_on_cancel, args=(proc, cancel), daemon=True
            ).start()

        for line in proc.stdout:
            stdout_lines.append(line)
            if on_line is not None:
                on_line(line.rstrip("\n"))

        returncode = proc.wait()
        stderr_reader.join()

    if cancel is not None and cancel.is_set():
        raise ToolCancelled(tool)

    if returncode != 0:
        stderr = "".join(stderr_chunks)
        log.debug(f"{tool} failed ({returncode}): {stderr[-500:]}")
        raise ExternalToolError(tool=tool, exit_code=returncode, stderr=stderr)

    return "".join(stdout_lines)
