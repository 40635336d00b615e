"""Chapter table and tag assembly for the merged output."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from .models import Chapter


@dataclass(frozen=True)
class MetadataBundle:
    """Chapter table on the merged timeline plus custom tags."""

    chapters: tuple[Chapter, ...] = ()
    tags: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))


class MetadataBuilder:
    """Accumulates chapters file by file, in file order.

    Each file's chapters are file-relative; the builder shifts them by the
    summed duration of the files added before it.
    """

    def __init__(self) -> None:
        self._chapters: list[Chapter] = []
        self._tags: dict[str, str] = {}
        self._offset = 0.0

    def add_chapters(self, chapters: Iterable[Chapter], duration: float) -> MetadataBuilder:
        """Add one file's chapter list, then advance past the file."""
        for chapter in chapters:
            self._chapters.append(
                Chapter(
                    start=self._offset + chapter.start,
                    end=self._offset + chapter.end,
                    title=chapter.title,
                )
            )
        self._offset += duration
        return self

    def add_chapter(self, duration: float, title: str) -> MetadataBuilder:
        """Add a single chapter spanning a whole file."""
        return self.add_chapters([Chapter(0.0, duration, title)], duration)

    def with_entry(self, key: str, value: str) -> MetadataBuilder:
        self._tags[key] = value
        return self

    def build(self) -> MetadataBundle:
        return MetadataBundle(
            chapters=tuple(self._chapters),
            tags=MappingProxyType(dict(self._tags)),
        )
