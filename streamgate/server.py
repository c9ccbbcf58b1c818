"""FastAPI backend for streamgate.

This service exposes two endpoints:
- GET /api/info     : returns metadata and available encodings for a video
- GET /api/download : streams one encoding (video or audio-only) as a file

Run with:
    uvicorn streamgate.server:app --host 0.0.0.0 --port 8000
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI, Query, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.responses import JSONResponse, Response
from starlette.datastructures import MutableHeaders
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from streamgate import __version__
from streamgate.config import Settings, configure_logging
from streamgate.handlers import handle_download, handle_info
from streamgate.media_source import YtDlpMediaSource
from streamgate.messages import message
from streamgate.models import DownloadRequest, MediaSource

CORS_HEADERS: Dict[str, str] = {
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,OPTIONS,PATCH,DELETE,POST,PUT",
    "Access-Control-Allow-Headers": (
        "X-CSRF-Token, X-Requested-With, Accept, Accept-Version, Content-Length, "
        "Content-MD5, Content-Type, Date, X-Api-Version"
    ),
}


class PermissiveCorsMiddleware:
    """Add the cross-origin headers to every response and answer preflights.

    Any ``OPTIONS`` request gets an empty 200, whether or not the browser
    sent the preflight request headers.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["method"] == "OPTIONS":
            response = Response(status_code=200, headers=CORS_HEADERS)
            await response(scope, receive, send)
            return

        async def send_with_cors(msg: Message) -> None:
            if msg["type"] == "http.response.start":
                headers = MutableHeaders(scope=msg)
                for name, value in CORS_HEADERS.items():
                    headers[name] = value
            await send(msg)

        await self.app(scope, receive, send_with_cors)


router = APIRouter()


@router.get("/")
async def root() -> Dict[str, str]:
    return {"status": "ok"}


@router.get("/api/health")
async def healthcheck(request: Request) -> Dict[str, Any]:
    """Return service readiness and tool versions."""
    settings: Settings = request.app.state.settings
    return {
        "status": "ok",
        "version": __version__,
        "yt_dlp": YtDlpMediaSource.version(),
        "ytdlp_binary": settings.ytdlp_binary,
        "locale": settings.locale,
        "development": settings.development,
    }


@router.get("/api/info")
async def fetch_info(
    request: Request,
    url: Optional[str] = Query(None, description="Video URL"),
    video_id: Optional[str] = Query(None, alias="videoId", description="Video ID"),
) -> Response:
    """Return metadata and the available encodings for a video."""
    state = request.app.state
    return await handle_info(
        url,
        video_id,
        source=state.source,
        settings=state.settings,
        log=state.logger,
    )


@router.get("/api/download")
async def download(
    request: Request,
    url: Optional[str] = Query(None, description="Video URL to download"),
    video_id: Optional[str] = Query(None, alias="videoId", description="Video ID"),
    quality: Optional[str] = Query(None, description="e.g. 720p, highest, lowest or audio"),
    format: Optional[str] = Query(None, description="Container, e.g. mp4, webm, mp3"),
    type: Optional[str] = Query(None, description="'audio' selects audio-only mode"),
    itag: Optional[str] = Query(None, description="Exact format id from /api/info"),
) -> Response:
    """Stream the selected encoding back to the client."""
    state = request.app.state
    download_request = DownloadRequest.from_query(
        url=url,
        video_id=video_id,
        quality=quality,
        format=format,
        type=type,
        itag=itag,
    )
    return await handle_download(
        download_request,
        source=state.source,
        settings=state.settings,
        log=state.logger,
    )


def create_app(
    source: Optional[MediaSource] = None,
    settings: Optional[Settings] = None,
    logger: Optional[logging.Logger] = None,
) -> FastAPI:
    """Build the API with injectable collaborators."""
    settings = settings or Settings.from_env()
    if logger is None:
        configure_logging(settings.log_level)
        logger = logging.getLogger("streamgate")

    app = FastAPI(title="streamgate API", version=__version__)
    app.state.settings = settings
    app.state.logger = logger
    app.state.source = source or YtDlpMediaSource(
        binary=settings.ytdlp_binary,
        chunk_size=settings.chunk_size,
        log=logger,
    )
    app.add_middleware(PermissiveCorsMiddleware)
    app.include_router(router)

    @app.exception_handler(StarletteHTTPException)
    async def method_not_allowed_handler(request: Request, exc: StarletteHTTPException) -> Response:
        if exc.status_code == 405:
            return JSONResponse(
                {"error": message("method_not_allowed", settings.locale)},
                status_code=405,
                headers=exc.headers,
            )
        return await http_exception_handler(request, exc)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    _settings = Settings.from_env()
    uvicorn.run("streamgate.server:app", host=_settings.host, port=_settings.port, reload=False)
