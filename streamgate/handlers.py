"""Request handlers for the info and download endpoints.

Both handlers are stateless: they resolve the locator, call the media
source once and shape the response. Failures before the download headers
are committed become JSON bodies with a 400/500 status. Once streaming has
started the only remaining failure signal is aborting the transfer.
"""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict, Optional, Union

from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.types import Receive, Scope, Send

from streamgate import catalog
from streamgate.config import Settings
from streamgate.exceptions import (
    InvalidInputError,
    InvalidUrlError,
    StreamGateError,
    classify_upstream_error,
)
from streamgate.messages import message
from streamgate.models import ByteStream, DownloadRequest, MediaSource, VideoInfo
from streamgate.selector import select
from streamgate.shaping import shape
from streamgate.urls import resolve_locator

Logger = Union[logging.Logger, logging.LoggerAdapter]


# ---------------------------------------------------------------------------
# Error bodies
# ---------------------------------------------------------------------------

def message_key_for(exc: BaseException, default: str) -> str:
    if isinstance(exc, InvalidInputError):
        return "missing_input"
    if isinstance(exc, InvalidUrlError):
        return "invalid_url"
    return classify_upstream_error(str(exc), default)


def error_response(
    exc: BaseException,
    settings: Settings,
    *,
    default_key: str,
    envelope: bool,
) -> JSONResponse:
    """Build the JSON error body for *exc*.

    ``envelope`` adds the ``success: false`` flag used by the info endpoint.
    Raw upstream text goes into ``details`` only in development.
    """
    status_code = exc.status_code if isinstance(exc, StreamGateError) else 500
    body: Dict[str, Any] = {"success": False} if envelope else {}
    body["error"] = message(message_key_for(exc, default_key), settings.locale)
    if status_code >= 500 and settings.development:
        body["details"] = str(exc)
    return JSONResponse(body, status_code=status_code)


# ---------------------------------------------------------------------------
# Info
# ---------------------------------------------------------------------------

def build_info_payload(info: VideoInfo) -> Dict[str, Any]:
    formats = catalog.sort_encodings(catalog.normalize(info.raw_encodings))
    return {
        "videoId": info.id,
        "title": info.title,
        "author": info.author_name,
        "channelId": info.author_id,
        "lengthSeconds": info.length_seconds,
        "viewCount": info.view_count,
        "description": info.description,
        "uploadDate": info.upload_date,
        "thumbnails": [thumb.to_dict() for thumb in info.thumbnails],
        "formats": [fmt.to_dict() for fmt in formats],
        "keywords": list(info.keywords),
        "category": info.category,
        "isLiveContent": info.is_live_content,
        "availableQualities": catalog.distinct_qualities(formats, want_video=True),
        "availableAudioQualities": catalog.distinct_qualities(formats, want_video=False),
    }


async def handle_info(
    url: Optional[str],
    video_id: Optional[str],
    *,
    source: MediaSource,
    settings: Settings,
    log: Logger,
) -> Response:
    try:
        locator = resolve_locator(url, video_id, source)
        log.info("info requested url=%s", locator)
        info = await source.fetch_info(locator)
        payload = build_info_payload(info)
    except (InvalidInputError, InvalidUrlError) as exc:
        log.info("info rejected reason=%s", exc)
        return error_response(exc, settings, default_key="info_failed", envelope=True)
    except Exception as exc:
        log.exception("info failed")
        return error_response(exc, settings, default_key="info_failed", envelope=True)
    return JSONResponse({"success": True, "data": payload})


# ---------------------------------------------------------------------------
# Download
# ---------------------------------------------------------------------------

class MediaStreamResponse(StreamingResponse):
    """Streaming response that always releases its upstream stream.

    The body iterator is closed on every exit path, including client
    disconnects and cancellation, so the upstream process does not leak.
    """

    def __init__(self, upstream: ByteStream, content: AsyncIterator[bytes], **kwargs: Any) -> None:
        super().__init__(content, **kwargs)
        self.upstream = upstream

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            aclose = getattr(self.body_iterator, "aclose", None)
            if aclose is not None:
                await aclose()
            await self.upstream.aclose()


async def relay(first: bytes, stream: ByteStream, log: Logger) -> AsyncIterator[bytes]:
    """Yield the primed first chunk, then the rest of *stream*."""
    try:
        if first:
            yield first
        async for chunk in stream:
            yield chunk
    except Exception:
        # Headers are already on the wire; re-raising aborts the transfer.
        log.exception("stream failed after headers were sent")
        raise
    else:
        log.info("download completed")
    finally:
        await stream.aclose()


async def _first_chunk(stream: ByteStream) -> bytes:
    try:
        return await stream.__anext__()
    except StopAsyncIteration:
        return b""


async def handle_download(
    request: DownloadRequest,
    *,
    source: MediaSource,
    settings: Settings,
    log: Logger,
) -> Response:
    # ValidatingInput -> ResolvingUrl -> SelectingFormat
    try:
        locator = resolve_locator(request.url, request.video_id, source)
        selection = select(request)
        log.info(
            "download requested url=%s kind=%s container=%s quality=%s selection=%s",
            locator,
            request.kind,
            request.container,
            request.quality_label,
            selection.describe(),
        )
        info = await source.fetch_info(locator)
        shaped = shape(info.title, request)
        stream = await source.open_stream(locator, selection, info=info)
    except (InvalidInputError, InvalidUrlError) as exc:
        log.info("download rejected reason=%s", exc)
        return error_response(exc, settings, default_key="download_failed", envelope=False)
    except Exception as exc:
        log.exception("download failed before streaming")
        return error_response(exc, settings, default_key="download_failed", envelope=False)

    # HeadersPending: nothing has been written yet, so a failing first read
    # can still be reported with a status code.
    try:
        first = await _first_chunk(stream)
    except Exception as exc:
        log.exception("stream failed before headers were sent")
        await stream.aclose()
        return error_response(exc, settings, default_key="stream_failed", envelope=False)

    log.info("streaming filename=%s content_type=%s", shaped.filename, shaped.content_type)
    return MediaStreamResponse(
        stream,
        relay(first, stream, log),
        status_code=200,
        headers=shaped.headers(),
        media_type=shaped.content_type,
    )
