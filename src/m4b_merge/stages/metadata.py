"""Metadata stage -- chapter table and custom tags for the merged file.

Files that carry their own chapters keep them verbatim. A file without
chapters becomes one chapter spanning the whole file, titled "Chapter N".
N is a running 1-based counter that also advances past every explicit
chapter, so a synthesized number never repeats one already used.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from loguru import logger

from ..chapters import MetadataBuilder, MetadataBundle
from ..models import SourceRecord, Stage

log = logger.bind(stage=Stage.METADATA)


def run(
    records: Sequence[SourceRecord],
    tags: Mapping[str, str] | None = None,
) -> MetadataBundle:
    builder = MetadataBuilder()

    chapter_number = 1
    for record in records:
        if record.chapters:
            builder.add_chapters(record.chapters, record.duration)
            chapter_number += len(record.chapters)
        else:
            builder.add_chapter(record.duration, f"Chapter {chapter_number}")
            chapter_number += 1

    for key, value in (tags or {}).items():
        builder.with_entry(key, value)

    bundle = builder.build()
    log.debug(f"Built {len(bundle.chapters)} chapters, {len(bundle.tags)} custom tags")
    return bundle
