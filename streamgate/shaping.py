"""Derive download filename and transfer headers from a request."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict
from urllib.parse import quote

from streamgate.models import DownloadRequest
from streamgate.selector import DEFAULT_AUDIO_CONTAINER, DEFAULT_VIDEO_CONTAINER

MAX_TITLE_LENGTH = 50
FALLBACK_TITLE = "download"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

CONTENT_TYPES: Dict[str, str] = {
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mkv": "video/x-matroska",
    "avi": "video/x-msvideo",
    "mov": "video/quicktime",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "wav": "audio/wav",
    "flac": "audio/flac",
    "aac": "audio/aac",
}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_\s-]")
_WHITESPACE = re.compile(r"\s+")
# Characters encodeURIComponent leaves untouched besides alphanumerics.
_URI_COMPONENT_SAFE = "-_.!~*'()"


@dataclass(frozen=True, slots=True)
class ShapedResponse:
    filename: str
    content_type: str
    disposition: str

    def headers(self) -> Dict[str, str]:
        return {
            "Content-Disposition": self.disposition,
            "Content-Type": self.content_type,
            "Transfer-Encoding": "chunked",
        }


def clean_title(title: str) -> str:
    """Keep ASCII word characters, whitespace and hyphens; spaces become underscores."""
    cleaned = _WHITESPACE.sub("_", _UNSAFE_CHARS.sub("", title or ""))
    return cleaned[:MAX_TITLE_LENGTH] or FALLBACK_TITLE


def content_type_for(container: str) -> str:
    return CONTENT_TYPES.get(container, DEFAULT_CONTENT_TYPE)


def request_container(request: DownloadRequest) -> str:
    if request.is_audio:
        return request.container or DEFAULT_AUDIO_CONTAINER
    return request.container or DEFAULT_VIDEO_CONTAINER


def build_filename(title: str, request: DownloadRequest) -> str:
    base = clean_title(title)
    container = request_container(request)
    if request.is_audio:
        return f"{base}_audio.{container}"
    return f"{base}_{request.quality_label or 'highest'}.{container}"


def shape(title: str, request: DownloadRequest) -> ShapedResponse:
    filename = build_filename(title, request)
    return ShapedResponse(
        filename=filename,
        content_type=content_type_for(request_container(request)),
        disposition=f'attachment; filename="{quote(filename, safe=_URI_COMPONENT_SAFE)}"',
    )
