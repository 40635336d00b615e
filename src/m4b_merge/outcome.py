"""Two-armed result type for operations that fail per item in a batch.

Batch stages fan out one operation per input and need every failure, not
just the first, so fallible operations return Ok or Err instead of raising.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import ClassVar, Generic, TypeVar, Union

from loguru import logger

from .errors import ExternalToolError
from .models import ErrorKind

T = TypeVar("T")

log = logger.bind(stage="outcome")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Err:
    """A failure with a user-facing message and an optional underlying cause."""

    message: str
    kind: ErrorKind
    cause: BaseException | None = None

    ok: ClassVar[bool] = False

    def report(self, verbose: bool = False) -> None:
        """Print the diagnostic. The cause is only shown in verbose mode."""
        log.error(self.message)
        if not verbose or self.cause is None:
            return
        if isinstance(self.cause, ExternalToolError):
            log.error(f"{self.cause.tool} output: {self.cause.stderr.strip()}")
        else:
            log.opt(exception=self.cause).error(f"Caused by: {self.cause}")


Outcome = Union[Ok[T], Err]


def partition(outcomes: Iterable[Outcome[T]]) -> tuple[list[T], list[Err]]:
    """Split outcomes into successful values and failures, keeping order."""
    values: list[T] = []
    errors: list[Err] = []
    for outcome in outcomes:
        if isinstance(outcome, Ok):
            values.append(outcome.value)
        else:
            errors.append(outcome)
    return values, errors
