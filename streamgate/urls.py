"""Turn request input into a canonical, validated locator."""
from __future__ import annotations

from typing import Optional

from streamgate.exceptions import InvalidInputError, InvalidUrlError
from streamgate.models import MediaSource

WATCH_URL_TEMPLATE = "https://www.youtube.com/watch?v={video_id}"


def build_watch_url(video_id: str) -> str:
    return WATCH_URL_TEMPLATE.format(video_id=video_id)


def resolve_locator(url: Optional[str], video_id: Optional[str], source: MediaSource) -> str:
    """Return the locator for *video_id* (preferred) or *url*.

    Raises :class:`InvalidInputError` when both are empty and
    :class:`InvalidUrlError` when the source rejects the result.
    """
    if not url and not video_id:
        raise InvalidInputError("Either url or videoId is required")
    locator = build_watch_url(video_id) if video_id else url
    if not source.validate(locator):
        raise InvalidUrlError(f"Invalid URL: {locator}")
    return locator
