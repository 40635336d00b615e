"""Fan-out/fan-in helper for per-file batch stages."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import TypeVar

from loguru import logger

T = TypeVar("T")
R = TypeVar("R")

log = logger.bind(stage="concurrency")


def run_parallel(
    func: Callable[[T], R],
    items: Sequence[T],
    max_workers: int = 0,
) -> list[R]:
    """Run func over items concurrently and wait for every call to finish.

    A fresh pool is created per call, sized to the item count unless
    max_workers > 0 caps it. Results come back in input order. There is no
    early exit: a failing item does not stop its siblings, so func should
    report failure through its return value.
    """
    if not items:
        return []

    workers = len(items) if max_workers <= 0 else min(max_workers, len(items))
    name = getattr(func, "__name__", repr(func))
    log.debug(f"run_parallel({name}, items={len(items)}, workers={workers})")

    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = [executor.submit(func, item) for item in items]
        return [future.result() for future in futures]
