"""Pick how a download request maps onto one encoding.

:func:`select` turns a :class:`DownloadRequest` into a selection outcome.
The outcome is plain data; :func:`choose_encoding` is the interpreter the
media source applies to its encoding list once it has one.
"""
from __future__ import annotations

import re
from typing import List, Optional, Sequence

from streamgate.catalog import quality_rank
from streamgate.exceptions import NoMatchingFormatError
from streamgate.models import (
    AudioPreference,
    DownloadRequest,
    ExactId,
    ExtremalPreference,
    FilterPreference,
    RawEncoding,
    SelectionOutcome,
)

DEFAULT_AUDIO_CONTAINER = "mp3"
DEFAULT_VIDEO_CONTAINER = "mp4"
EXTREMAL_QUALITIES = ("highest", "lowest")

_LEADING_DIGITS = re.compile(r"^(\d+)")


def select(request: DownloadRequest) -> SelectionOutcome:
    """Decide the selection outcome for *request*; first matching rule wins."""
    if request.is_audio:
        container = request.container or DEFAULT_AUDIO_CONTAINER
        return AudioPreference(
            target_quality="highestaudio",
            container_hint="mp3" if container == "mp3" else "m4a",
        )

    if request.itag:
        return ExactId(request.itag)

    container = request.container or DEFAULT_VIDEO_CONTAINER
    if request.quality_label is None or request.quality_label in EXTREMAL_QUALITIES:
        return ExtremalPreference(
            direction=request.quality_label or "highest",
            container=container,
        )
    return FilterPreference(container=container, quality_substring=request.quality_label)


# ---------------------------------------------------------------------------
# Interpretation against a concrete encoding list
# ---------------------------------------------------------------------------

def _by_rank(encodings: Sequence[RawEncoding]) -> List[RawEncoding]:
    return sorted(encodings, key=lambda enc: -quality_rank(enc.quality_label))


def resolution_height(quality_label: Optional[str]) -> int:
    """Leading digits of a label such as ``"1440p60"``; 0 when there are none."""
    match = _LEADING_DIGITS.match(quality_label or "")
    return int(match.group(1)) if match else 0


def _by_height_then_bitrate(encodings: Sequence[RawEncoding]) -> List[RawEncoding]:
    return sorted(
        encodings,
        key=lambda enc: (-resolution_height(enc.quality_label), -(enc.bitrate or 0)),
    )


def matches_filter(encoding: RawEncoding, preference: FilterPreference) -> bool:
    """Container equality plus a plain substring test on the quality label."""
    return (
        encoding.container == preference.container
        and bool(encoding.quality_label)
        and preference.quality_substring in encoding.quality_label
    )


def choose_encoding(outcome: SelectionOutcome, encodings: Sequence[RawEncoding]) -> RawEncoding:
    """Resolve *outcome* to a single encoding.

    Raises :class:`NoMatchingFormatError` when no encoding qualifies.
    """
    if isinstance(outcome, ExactId):
        candidates = [enc for enc in encodings if enc.id == outcome.id]

    elif isinstance(outcome, AudioPreference):
        audio_only = [enc for enc in encodings if enc.has_audio and not enc.has_video]
        hinted = [enc for enc in audio_only if enc.container == outcome.container_hint]
        candidates = sorted(hinted or audio_only, key=lambda enc: -(enc.bitrate or 0))

    elif isinstance(outcome, ExtremalPreference):
        video = [
            enc for enc in encodings
            if enc.has_video and enc.container == outcome.container
        ]
        muxed = [enc for enc in video if enc.has_audio]
        candidates = _by_height_then_bitrate(muxed or video)
        if outcome.direction == "lowest":
            candidates.reverse()

    elif isinstance(outcome, FilterPreference):
        candidates = _by_rank([enc for enc in encodings if matches_filter(enc, outcome)])

    else:
        raise TypeError(f"Unsupported selection outcome: {outcome!r}")

    if not candidates:
        raise NoMatchingFormatError()
    return candidates[0]
