"""Encoding normalization, ranking and quality summaries.

Every function here is a pure transformation with no I/O.

Pipeline order used by the info endpoint:

1. **Normalize** - drop track-less entries and fill display fields.
2. **Sort** - quality rank descending, stable for equal ranks.
3. **Summarize** - distinct video and audio-only quality labels.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence

from streamgate.models import NormalizedEncoding, RawEncoding

UNKNOWN_QUALITY = "unknown"

QUALITY_RANK: Dict[str, int] = {
    "2160p": 4000,
    "1440p": 3000,
    "1080p": 2000,
    "720p": 1000,
    "480p": 500,
    "360p": 300,
    "240p": 200,
    "144p": 100,
}


def quality_rank(quality: Optional[str]) -> int:
    """Rank for an exact quality label; anything not in the table ranks 0."""
    return QUALITY_RANK.get(quality or "", 0)


def parse_content_length(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def normalize_encoding(raw: RawEncoding) -> NormalizedEncoding:
    return NormalizedEncoding(
        id=raw.id,
        quality=raw.quality_label or raw.audio_quality or UNKNOWN_QUALITY,
        container=raw.container,
        has_video=raw.has_video,
        has_audio=raw.has_audio,
        filesize_bytes=parse_content_length(raw.content_length),
        fps=raw.fps,
        bitrate=raw.bitrate,
        mime_type=raw.mime_type,
    )


def normalize(raw_encodings: Iterable[RawEncoding]) -> List[NormalizedEncoding]:
    """Project raw encodings into display records, skipping entries with no tracks."""
    return [
        normalize_encoding(raw)
        for raw in raw_encodings
        if raw.has_video or raw.has_audio
    ]


def sort_encodings(encodings: Sequence[NormalizedEncoding]) -> List[NormalizedEncoding]:
    """Order by quality rank, highest first; equal ranks keep input order."""
    return sorted(encodings, key=lambda enc: -quality_rank(enc.quality))


def distinct_qualities(encodings: Iterable[NormalizedEncoding], want_video: bool) -> List[str]:
    """Distinct known qualities in first-seen order.

    ``want_video`` selects video-capable entries; otherwise only
    audio-only entries are considered.
    """
    seen: Dict[str, None] = {}
    for enc in encodings:
        if want_video:
            wanted = enc.has_video
        else:
            wanted = enc.has_audio and not enc.has_video
        if wanted and enc.quality != UNKNOWN_QUALITY:
            seen.setdefault(enc.quality, None)
    return list(seen)
