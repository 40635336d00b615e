"""Target codec selection -- one codec and bitrate for the whole batch."""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from .models import AudioCodec, EncodingTarget, ErrorKind, SourceRecord, Stage
from .outcome import Err, Ok, Outcome

log = logger.bind(stage=Stage.SELECT)


def select_target(
    records: Sequence[SourceRecord],
    codec: AudioCodec | None = None,
    bitrate: int | None = None,
) -> Outcome[EncodingTarget]:
    """Choose the codec every input will share.

    With an override, use it (lossy codecs need an explicit bitrate,
    lossless ones drop any bitrate given). Otherwise pick the most common
    supported input codec; ties go to the codec that appears first in the
    input order. A lossy winner takes the highest bitrate among its files
    so nothing already acceptable gets downgraded.
    """
    if codec is not None:
        if not codec.is_lossy:
            return Ok(EncodingTarget(codec=codec))
        if bitrate is None:
            return Err(
                "Bitrate must be specified when specifying lossy codecs",
                ErrorKind.BITRATE_REQUIRED,
            )
        return Ok(EncodingTarget(codec=codec, bitrate=bitrate))

    # dict keeps first-occurrence order of groups
    groups: dict[AudioCodec, list[SourceRecord]] = {}
    for record in records:
        parsed = AudioCodec.parse(record.codec)
        if parsed is None:
            log.debug(f"Ignoring unsupported codec {record.codec!r} ({record.path.name})")
            continue
        groups.setdefault(parsed, []).append(record)

    if not groups:
        return Err(
            "Input codec is not supported in output container, specify a codec to use",
            ErrorKind.UNSUPPORTED_CODEC,
        )

    # max() returns the first maximal element, so ties keep input order
    winner = max(groups, key=lambda c: len(groups[c]))
    log.debug(
        "Codec votes: "
        + ", ".join(f"{c}={len(members)}" for c, members in groups.items())
    )

    if not winner.is_lossy:
        return Ok(EncodingTarget(codec=winner))
    return Ok(
        EncodingTarget(
            codec=winner,
            bitrate=max(r.bitrate for r in groups[winner]),
        )
    )


def needs_conversion(record: SourceRecord, target: EncodingTarget) -> bool:
    """True if the record's audio is not already in the target codec."""
    return AudioCodec.parse(record.codec) is not target.codec
