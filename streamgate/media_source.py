"""yt-dlp backed media source.

Metadata comes from the ``yt_dlp`` Python API, run in a worker thread.
Media bytes come from the ``yt-dlp`` executable writing the selected
format to stdout, read through asyncio pipes. yt-dlp errors are wrapped
into :mod:`streamgate.exceptions` types here and nowhere else.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import re
from collections import deque
from typing import Any, Deque, Dict, List, Optional
from urllib.parse import parse_qs, urlparse

import yt_dlp
from starlette.concurrency import run_in_threadpool

from streamgate.exceptions import ResolverError, StreamError
from streamgate.models import RawEncoding, SelectionOutcome, Thumbnail, VideoInfo
from streamgate.selector import choose_encoding

DEFAULT_HTTP_HEADERS = {"User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/122.0 Safari/537.36"}

VALID_HOSTS = {
    "youtube.com",
    "www.youtube.com",
    "m.youtube.com",
    "music.youtube.com",
    "gaming.youtube.com",
}
SHORT_HOSTS = {"youtu.be", "www.youtu.be"}
ID_PATH_PREFIXES = ("/embed/", "/v/", "/shorts/", "/live/", "/e/")
VIDEO_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{11}$")
LIVE_STATUSES = {"is_live", "was_live", "post_live", "is_upcoming"}


def extract_video_id(url: str) -> Optional[str]:
    """Return the 11-character video id embedded in *url*, or ``None``."""
    parsed = urlparse((url or "").strip())
    if parsed.scheme not in ("http", "https"):
        return None
    host = (parsed.hostname or "").lower()
    candidate: Optional[str] = None
    if host in SHORT_HOSTS:
        candidate = parsed.path.lstrip("/").split("/")[0]
    elif host in VALID_HOSTS:
        candidate = (parse_qs(parsed.query).get("v") or [None])[0]
        if not candidate:
            for prefix in ID_PATH_PREFIXES:
                if parsed.path.startswith(prefix):
                    candidate = parsed.path[len(prefix):].split("/")[0]
                    break
    if not candidate:
        return None
    candidate = candidate[:11]
    return candidate if VIDEO_ID_PATTERN.match(candidate) else None


# ---------------------------------------------------------------------------
# yt-dlp info dict -> domain models
# ---------------------------------------------------------------------------

def _has_track(codec: Optional[str], ext: Optional[str]) -> bool:
    if codec is not None:
        return codec != "none"
    return ext not in (None, "none")


def _optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def encoding_from_ytdlp(fmt: Dict[str, Any]) -> RawEncoding:
    vcodec = fmt.get("vcodec")
    acodec = fmt.get("acodec")
    has_video = _has_track(vcodec, fmt.get("video_ext"))
    has_audio = _has_track(acodec, fmt.get("audio_ext"))
    ext = str(fmt.get("ext") or "")
    fps = _optional_int(fmt.get("fps"))

    quality_label = None
    height = fmt.get("height")
    if has_video and isinstance(height, int) and height > 0:
        quality_label = f"{height}p{fps}" if fps and fps > 30 else f"{height}p"

    audio_quality = None
    if has_audio:
        abr = _optional_int(fmt.get("abr"))
        audio_quality = f"{abr}kbps" if abr else fmt.get("format_note")

    codecs = [codec for codec in (vcodec, acodec) if codec and codec != "none"]
    mime_type = ""
    if has_video or has_audio:
        mime_type = f"{'video' if has_video else 'audio'}/{ext}"
        if codecs:
            mime_type += f'; codecs="{", ".join(codecs)}"'

    tbr = fmt.get("tbr")
    return RawEncoding(
        id=str(fmt.get("format_id", "")),
        container=ext,
        has_video=has_video,
        has_audio=has_audio,
        mime_type=mime_type,
        quality_label=quality_label,
        audio_quality=audio_quality,
        content_length=fmt.get("filesize") or fmt.get("filesize_approx"),
        fps=fps,
        bitrate=int(tbr * 1000) if isinstance(tbr, (int, float)) else None,
    )


def _upload_date(raw: Optional[str]) -> Optional[str]:
    """yt-dlp reports ``YYYYMMDD``; expose ``YYYY-MM-DD``."""
    if raw and len(raw) == 8 and raw.isdigit():
        return f"{raw[:4]}-{raw[4:6]}-{raw[6:]}"
    return raw


def info_from_ytdlp(info: Dict[str, Any]) -> VideoInfo:
    thumbnails = tuple(
        Thumbnail(url=thumb["url"], width=thumb.get("width"), height=thumb.get("height"))
        for thumb in info.get("thumbnails") or []
        if isinstance(thumb, dict) and thumb.get("url")
    )
    formats: List[Dict[str, Any]] = [
        fmt for fmt in info.get("formats") or [] if isinstance(fmt, dict)
    ]
    categories = info.get("categories") or []
    return VideoInfo(
        id=str(info.get("id", "")),
        title=str(info.get("title") or ""),
        author_name=str(info.get("uploader") or info.get("channel") or ""),
        author_id=str(info.get("channel_id") or info.get("uploader_id") or ""),
        length_seconds=max(_optional_int(info.get("duration")) or 0, 0),
        view_count=max(_optional_int(info.get("view_count")) or 0, 0),
        description=str(info.get("description") or ""),
        upload_date=_upload_date(info.get("upload_date")),
        thumbnails=thumbnails,
        keywords=tuple(str(tag) for tag in info.get("tags") or []),
        category=categories[0] if categories else None,
        is_live_content=bool(
            info.get("is_live") or info.get("was_live") or info.get("live_status") in LIVE_STATUSES
        ),
        raw_encodings=tuple(encoding_from_ytdlp(fmt) for fmt in formats),
    )


# ---------------------------------------------------------------------------
# Byte stream over a yt-dlp subprocess
# ---------------------------------------------------------------------------

class SubprocessByteStream:
    """Async iterator over a yt-dlp process writing media to stdout.

    ``aclose`` kills the process if it is still running; it is safe to
    call more than once and before iteration has started.
    """

    STDERR_TAIL = 20
    KILL_TIMEOUT = 5.0

    def __init__(self, process: asyncio.subprocess.Process, chunk_size: int, log: logging.Logger) -> None:
        self._process = process
        self._chunk_size = chunk_size
        self._log = log
        self._stderr: Deque[str] = deque(maxlen=self.STDERR_TAIL)
        self._stderr_task = asyncio.ensure_future(self._drain_stderr())
        self._closed = False

    async def _drain_stderr(self) -> None:
        if self._process.stderr is None:
            return
        async for line in self._process.stderr:
            text = line.decode("utf-8", "ignore").strip()
            if text:
                self._stderr.append(text)

    def __aiter__(self) -> "SubprocessByteStream":
        return self

    async def __anext__(self) -> bytes:
        if self._closed or self._process.stdout is None:
            raise StopAsyncIteration
        chunk = await self._process.stdout.read(self._chunk_size)
        if chunk:
            return chunk

        returncode = await self._process.wait()
        await self._stderr_task
        await self.aclose()
        if returncode != 0:
            detail = "\n".join(list(self._stderr)[-6:]) or f"yt-dlp exited with code {returncode}"
            self._log.warning("yt-dlp failed code=%s stderr=%s", returncode, detail)
            raise StreamError(detail)
        raise StopAsyncIteration

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._process.returncode is None:
            self._log.info("terminating yt-dlp pid=%s", self._process.pid)
            with contextlib.suppress(ProcessLookupError):
                self._process.kill()
            try:
                await asyncio.wait_for(self._process.wait(), timeout=self.KILL_TIMEOUT)
            except asyncio.TimeoutError:
                self._log.warning("yt-dlp pid=%s did not exit after kill", self._process.pid)
        self._stderr_task.cancel()
        await asyncio.gather(self._stderr_task, return_exceptions=True)


# ---------------------------------------------------------------------------
# Media source
# ---------------------------------------------------------------------------

class YtDlpMediaSource:
    """:class:`~streamgate.models.MediaSource` implementation backed by yt-dlp."""

    def __init__(
        self,
        *,
        binary: str = "yt-dlp",
        chunk_size: int = 1024 * 256,
        log: Optional[logging.Logger] = None,
    ) -> None:
        self._binary = binary
        self._chunk_size = chunk_size
        self._log = log or logging.getLogger(__name__)

    @staticmethod
    def version() -> Optional[str]:
        return getattr(yt_dlp, "__version__", None)

    def validate(self, url: str) -> bool:
        return extract_video_id(url) is not None

    @staticmethod
    def _ydl_opts() -> Dict[str, Any]:
        return {
            "quiet": True,
            "no_warnings": True,
            "skip_download": True,
            "noplaylist": True,
            "http_headers": DEFAULT_HTTP_HEADERS,
        }

    def _extract(self, url: str) -> Dict[str, Any]:
        try:
            with yt_dlp.YoutubeDL(self._ydl_opts()) as ydl:
                info = ydl.extract_info(url, download=False)
        except yt_dlp.utils.DownloadError as exc:
            raise ResolverError(str(exc)) from exc
        except Exception as exc:
            raise ResolverError(f"Unexpected yt-dlp error: {exc}") from exc
        if not isinstance(info, dict):
            raise ResolverError("yt-dlp returned no metadata for the given URL")
        return info

    async def fetch_info(self, url: str) -> VideoInfo:
        raw = await run_in_threadpool(self._extract, url)
        return info_from_ytdlp(raw)

    async def open_stream(
        self,
        url: str,
        selection: SelectionOutcome,
        *,
        info: Optional[VideoInfo] = None,
    ) -> SubprocessByteStream:
        if info is None:
            info = await self.fetch_info(url)
        encoding = choose_encoding(selection, info.raw_encodings)
        self._log.info(
            "opening stream format=%s quality=%s container=%s size=%s",
            encoding.id,
            encoding.quality_label or encoding.audio_quality,
            encoding.container,
            encoding.content_length or "unknown",
        )
        cmd = [
            self._binary,
            "-f",
            encoding.id,
            "-o",
            "-",
            "--no-playlist",
            "--no-warnings",
            "--quiet",
            url,
        ]
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as exc:
            raise StreamError("yt-dlp is not installed or not in PATH") from exc
        return SubprocessByteStream(process, self._chunk_size, self._log)
