"""Shared fixtures for the streamgate test suite.

No network access and no yt-dlp invocation: endpoints are exercised
against :class:`FakeMediaSource`, which interprets selection outcomes the
same way the real source does.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Iterable, List, Optional, Sequence, Tuple

import pytest
from fastapi.testclient import TestClient

from streamgate.config import Settings
from streamgate.exceptions import StreamError
from streamgate.models import RawEncoding, SelectionOutcome, Thumbnail, VideoInfo
from streamgate.selector import choose_encoding
from streamgate.server import create_app


def raw(
    id: str = "18",
    *,
    quality_label: Optional[str] = "360p",
    audio_quality: Optional[str] = None,
    container: str = "mp4",
    has_video: bool = True,
    has_audio: bool = True,
    content_length: Any = None,
    fps: Optional[int] = None,
    bitrate: Optional[int] = None,
    mime_type: str = "video/mp4",
) -> RawEncoding:
    return RawEncoding(
        id=id,
        container=container,
        has_video=has_video,
        has_audio=has_audio,
        mime_type=mime_type,
        quality_label=quality_label,
        audio_quality=audio_quality,
        content_length=content_length,
        fps=fps,
        bitrate=bitrate,
    )


def make_info(encodings: Sequence[RawEncoding] = (), *, title: str = "My Video") -> VideoInfo:
    return VideoInfo(
        id="abc123",
        title=title,
        author_name="Some Channel",
        author_id="UC123",
        length_seconds=212,
        view_count=1000,
        description="A description",
        upload_date="2024-01-02",
        thumbnails=(Thumbnail(url="https://i.ytimg.com/vi/abc123/default.jpg", width=120, height=90),),
        keywords=("music", "live"),
        category="Music",
        is_live_content=False,
        raw_encodings=tuple(encodings),
    )


class FakeStream:
    """In-memory byte stream that can fail at a given chunk index."""

    def __init__(self, chunks: Iterable[bytes], *, fail_at: Optional[int] = None, delay: float = 0.0) -> None:
        self.chunks = list(chunks)
        self.fail_at = fail_at
        self.delay = delay
        self.index = 0
        self.closed = False

    def __aiter__(self) -> "FakeStream":
        return self

    async def __anext__(self) -> bytes:
        if self.closed:
            raise StopAsyncIteration
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_at is not None and self.index == self.fail_at:
            raise StreamError("upstream connection reset")
        if self.index >= len(self.chunks):
            raise StopAsyncIteration
        chunk = self.chunks[self.index]
        self.index += 1
        return chunk

    async def aclose(self) -> None:
        self.closed = True


class FakeMediaSource:
    def __init__(
        self,
        info: Optional[VideoInfo] = None,
        *,
        chunks: Iterable[bytes] = (b"chunk-1", b"chunk-2"),
        valid: bool = True,
        info_error: Optional[Exception] = None,
        open_error: Optional[Exception] = None,
        fail_at: Optional[int] = None,
        delay: float = 0.0,
    ) -> None:
        self.info = info or make_info([raw()])
        self.chunks = list(chunks)
        self.valid = valid
        self.info_error = info_error
        self.open_error = open_error
        self.fail_at = fail_at
        self.delay = delay
        self.validated: List[str] = []
        self.fetched: List[str] = []
        self.opened: List[Tuple[str, SelectionOutcome]] = []
        self.streams: List[FakeStream] = []

    def validate(self, url: str) -> bool:
        self.validated.append(url)
        return self.valid

    async def fetch_info(self, url: str) -> VideoInfo:
        self.fetched.append(url)
        if self.info_error is not None:
            raise self.info_error
        return self.info

    async def open_stream(
        self,
        url: str,
        selection: SelectionOutcome,
        *,
        info: Optional[VideoInfo] = None,
    ) -> FakeStream:
        self.opened.append((url, selection))
        if self.open_error is not None:
            raise self.open_error
        choose_encoding(selection, (info or self.info).raw_encodings)
        stream = FakeStream(self.chunks, fail_at=self.fail_at, delay=self.delay)
        self.streams.append(stream)
        return stream


@pytest.fixture
def source() -> FakeMediaSource:
    return FakeMediaSource()


@pytest.fixture
def settings() -> Settings:
    return Settings()


def build_client(source: FakeMediaSource, settings: Optional[Settings] = None) -> TestClient:
    app = create_app(
        source=source,
        settings=settings or Settings(),
        logger=logging.getLogger("streamgate.tests"),
    )
    return TestClient(app)


@pytest.fixture
def client(source: FakeMediaSource, settings: Settings) -> TestClient:
    return build_client(source, settings)
