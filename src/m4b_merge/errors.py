"""Exception hierarchy for the external engine boundary.

These never drive pipeline control flow. Adapters raise them; stages catch
them and carry them as the cause of an Err outcome.
"""


class MergeError(Exception):
    """Base exception for all m4b-merge errors."""


class ExternalToolError(MergeError):
    """An external subprocess (ffmpeg, ffprobe) failed."""

    def __init__(self, tool: str, exit_code: int, stderr: str) -> None:
        super().__init__(f"{tool} exited with code {exit_code}: {stderr}")
        self.tool = tool
        self.exit_code = exit_code
        self.stderr = stderr


class ProbeError(MergeError):
    """ffprobe ran but its output cannot describe a usable audio file."""


class ToolCancelled(MergeError):
    """The run's cancel signal was observed by an external invocation."""

    def __init__(self, tool: str) -> None:
        super().__init__(f"{tool} cancelled")
        self.tool = tool
