"""Value objects passed between the handlers, the pure pipeline and the media source.

All models are frozen dataclasses. None of them outlives a single request.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional, Protocol, Tuple, Union


@dataclass(frozen=True, slots=True)
class Thumbnail:
    url: str
    width: Optional[int] = None
    height: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "width": self.width, "height": self.height}


@dataclass(frozen=True, slots=True)
class RawEncoding:
    """One encoding as reported by the media source; optional fields may be missing."""

    id: str
    container: str
    has_video: bool
    has_audio: bool
    mime_type: str = ""
    quality_label: Optional[str] = None
    audio_quality: Optional[str] = None
    content_length: Optional[Union[int, str]] = None
    fps: Optional[int] = None
    bitrate: Optional[int] = None


@dataclass(frozen=True, slots=True)
class NormalizedEncoding:
    """Display-ready encoding; only built for entries carrying at least one track."""

    id: str
    quality: str
    container: str
    has_video: bool
    has_audio: bool
    filesize_bytes: Optional[int]
    fps: Optional[int]
    bitrate: Optional[int]
    mime_type: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "itag": self.id,
            "quality": self.quality,
            "container": self.container,
            "hasVideo": self.has_video,
            "hasAudio": self.has_audio,
            "filesize": self.filesize_bytes,
            "fps": self.fps,
            "bitrate": self.bitrate,
            "mimeType": self.mime_type,
        }


@dataclass(frozen=True, slots=True)
class VideoInfo:
    id: str
    title: str
    author_name: str = ""
    author_id: str = ""
    length_seconds: int = 0
    view_count: int = 0
    description: str = ""
    upload_date: Optional[str] = None
    thumbnails: Tuple[Thumbnail, ...] = ()
    keywords: Tuple[str, ...] = ()
    category: Optional[str] = None
    is_live_content: bool = False
    raw_encodings: Tuple[RawEncoding, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class DownloadRequest:
    url: Optional[str] = None
    video_id: Optional[str] = None
    kind: str = "video"
    container: Optional[str] = None
    quality_label: Optional[str] = None
    itag: Optional[str] = None

    @property
    def is_audio(self) -> bool:
        return self.kind == "audio"

    @classmethod
    def from_query(
        cls,
        url: Optional[str] = None,
        video_id: Optional[str] = None,
        quality: Optional[str] = None,
        format: Optional[str] = None,
        type: Optional[str] = None,
        itag: Optional[str] = None,
    ) -> "DownloadRequest":
        """Build a request from raw query values; blank strings count as absent."""
        kind = "audio" if type == "audio" or quality == "audio" else "video"
        return cls(
            url=url or None,
            video_id=video_id or None,
            kind=kind,
            container=format or None,
            quality_label=quality or None,
            itag=itag or None,
        )


# ---------------------------------------------------------------------------
# Selection outcomes, interpreted by the media source
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class ExactId:
    id: str

    def describe(self) -> str:
        return f"exact id={self.id}"


@dataclass(frozen=True, slots=True)
class AudioPreference:
    target_quality: str
    container_hint: str

    def describe(self) -> str:
        return f"audio quality={self.target_quality} container={self.container_hint}"


@dataclass(frozen=True, slots=True)
class ExtremalPreference:
    direction: str
    container: str

    def describe(self) -> str:
        return f"extremal direction={self.direction} container={self.container}"


@dataclass(frozen=True, slots=True)
class FilterPreference:
    container: str
    quality_substring: str

    def describe(self) -> str:
        return f"filter container={self.container} quality~{self.quality_substring}"


SelectionOutcome = Union[ExactId, AudioPreference, ExtremalPreference, FilterPreference]


# ---------------------------------------------------------------------------
# Media source capability
# ---------------------------------------------------------------------------

class ByteStream(Protocol):
    """Async iterator of media chunks; ``aclose`` releases the upstream."""

    def __aiter__(self) -> AsyncIterator[bytes]: ...

    async def __anext__(self) -> bytes: ...

    async def aclose(self) -> None: ...


class MediaSource(Protocol):
    """Resolver that turns a locator into metadata and a byte stream."""

    def validate(self, url: str) -> bool: ...

    async def fetch_info(self, url: str) -> VideoInfo: ...

    async def open_stream(
        self,
        url: str,
        selection: SelectionOutcome,
        *,
        info: Optional[VideoInfo] = None,
    ) -> ByteStream: ...
