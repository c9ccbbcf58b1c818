from urllib.parse import unquote

from conftest import FakeMediaSource, build_client, make_info, raw

from streamgate.config import Settings
from streamgate.exceptions import NoMatchingFormatError, ResolverError
from streamgate.messages import MESSAGES
from streamgate.models import AudioPreference, ExactId, ExtremalPreference, FilterPreference

TH = MESSAGES["th"]
EN = MESSAGES["en"]


def test_root_ok(client):
    resp = client.get("/")
    assert resp.status_code == 200
    data = resp.json()
    assert data.get("status") == "ok"


def test_health_includes_versions(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data.get("status") == "ok"
    assert "yt_dlp" in data
    assert data["ytdlp_binary"] == "yt-dlp"
    assert data["development"] is False


# ---------------------------------------------------------------------------
# CORS / methods
# ---------------------------------------------------------------------------

def test_options_preflight_returns_empty_200_with_cors(client):
    resp = client.options("/api/download")
    assert resp.status_code == 200
    assert resp.content == b""
    assert resp.headers["access-control-allow-origin"] == "*"
    assert resp.headers["access-control-allow-credentials"] == "true"
    assert "GET" in resp.headers["access-control-allow-methods"]


def test_cors_headers_on_regular_responses(client):
    resp = client.get("/api/info", params={"videoId": "abc123"})
    assert resp.headers["access-control-allow-origin"] == "*"
    resp = client.get("/api/info")
    assert resp.status_code == 400
    assert resp.headers["access-control-allow-origin"] == "*"


def test_non_get_methods_are_rejected(client, source):
    for method in ("post", "put", "delete"):
        resp = getattr(client, method)("/api/info")
        assert resp.status_code == 405
        assert resp.json() == {"error": "Method not allowed"}
    resp = client.post("/api/download")
    assert resp.status_code == 405
    assert source.fetched == []


def test_unknown_path_still_404(client):
    assert client.get("/api/nope").status_code == 404


# ---------------------------------------------------------------------------
# /api/info
# ---------------------------------------------------------------------------

def test_info_orders_formats_and_reports_qualities():
    source = FakeMediaSource(
        make_info(
            [
                raw("22", quality_label="720p60", has_video=True, has_audio=True, container="mp4"),
                raw("137", quality_label="1080p", has_video=True, has_audio=False, container="mp4"),
                raw("140", quality_label=None, audio_quality="AUDIO_QUALITY_MEDIUM",
                    has_video=False, has_audio=True, container="m4a", content_length="3456"),
                raw("sb0", quality_label=None, has_video=False, has_audio=False, container="mhtml"),
            ]
        )
    )
    resp = build_client(source).get("/api/info", params={"videoId": "abc123"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert data["availableQualities"] == ["1080p", "720p60"]
    assert data["availableAudioQualities"] == ["AUDIO_QUALITY_MEDIUM"]
    assert [fmt["itag"] for fmt in data["formats"]] == ["137", "22", "140"]
    assert data["formats"][2]["filesize"] == 3456
    assert data["formats"][0] == {
        "itag": "137",
        "quality": "1080p",
        "container": "mp4",
        "hasVideo": True,
        "hasAudio": False,
        "filesize": None,
        "fps": None,
        "bitrate": None,
        "mimeType": "video/mp4",
    }
    assert source.fetched == ["https://www.youtube.com/watch?v=abc123"]


def test_info_payload_carries_video_details(client):
    data = client.get("/api/info", params={"url": "https://youtu.be/abc123"}).json()["data"]
    assert data["videoId"] == "abc123"
    assert data["title"] == "My Video"
    assert data["author"] == "Some Channel"
    assert data["channelId"] == "UC123"
    assert data["lengthSeconds"] == 212
    assert data["viewCount"] == 1000
    assert data["uploadDate"] == "2024-01-02"
    assert data["thumbnails"] == [
        {"url": "https://i.ytimg.com/vi/abc123/default.jpg", "width": 120, "height": 90}
    ]
    assert data["keywords"] == ["music", "live"]
    assert data["category"] == "Music"
    assert data["isLiveContent"] is False


def test_info_missing_input_is_400_without_resolver_call(client, source):
    resp = client.get("/api/info", params={"url": "", "videoId": ""})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": TH["missing_input"]}
    assert source.validated == []
    assert source.fetched == []


def test_info_invalid_url_is_400():
    source = FakeMediaSource(valid=False)
    resp = build_client(source).get("/api/info", params={"url": "https://example.com/x"})
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": TH["invalid_url"]}
    assert source.fetched == []


def test_info_resolver_failures_are_classified():
    cases = {
        "ERROR: [youtube] abc123: Video unavailable": "video_unavailable",
        "ERROR: [youtube] abc123: Private video. Sign in if you've been granted access": "private_video",
        "Age-restricted content": "age_restricted",
        "Something else broke": "info_failed",
    }
    for upstream, key in cases.items():
        source = FakeMediaSource(info_error=ResolverError(upstream))
        resp = build_client(source).get("/api/info", params={"videoId": "abc123"})
        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": TH[key]}


def test_info_details_only_in_development():
    source = FakeMediaSource(info_error=ResolverError("Video unavailable"))
    resp = build_client(source, Settings(environment="development")).get(
        "/api/info", params={"videoId": "abc123"}
    )
    assert resp.json()["details"] == "Video unavailable"


def test_info_unexpected_exception_is_500():
    source = FakeMediaSource(info_error=RuntimeError("boom"))
    resp = build_client(source).get("/api/info", params={"videoId": "abc123"})
    assert resp.status_code == 500
    assert resp.json()["error"] == TH["info_failed"]


def test_info_english_locale():
    source = FakeMediaSource(valid=False)
    resp = build_client(source, Settings(locale="en")).get("/api/info", params={"url": "nope"})
    assert resp.json()["error"] == EN["invalid_url"]


# ---------------------------------------------------------------------------
# /api/download
# ---------------------------------------------------------------------------

def test_download_streams_video_with_headers():
    source = FakeMediaSource(
        make_info([raw("22", quality_label="720p60"), raw("135", quality_label="480p")],
                  title="My Video: Live!")
    )
    resp = build_client(source).get(
        "/api/download", params={"videoId": "abc123", "quality": "720p", "format": "mp4"}
    )

    assert resp.status_code == 200
    assert resp.content == b"chunk-1chunk-2"
    assert resp.headers["content-type"] == "video/mp4"
    assert resp.headers["content-disposition"] == 'attachment; filename="My_Video_Live_720p.mp4"'
    assert resp.headers["transfer-encoding"] == "chunked"
    assert resp.headers["access-control-allow-origin"] == "*"
    assert source.opened == [
        ("https://www.youtube.com/watch?v=abc123", FilterPreference(container="mp4", quality_substring="720p"))
    ]
    assert source.streams[0].closed is True


def test_download_defaults_to_highest_mp4(client, source):
    resp = client.get("/api/download", params={"videoId": "abc123"})
    assert resp.status_code == 200
    assert source.opened[0][1] == ExtremalPreference(direction="highest", container="mp4")
    assert resp.headers["content-disposition"].endswith('_highest.mp4"')


def test_download_audio_mode():
    source = FakeMediaSource(
        make_info([raw("140", quality_label=None, audio_quality="medium",
                       has_video=False, container="m4a")])
    )
    client = build_client(source)

    resp = client.get("/api/download", params={"videoId": "abc123", "type": "audio"})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "audio/mpeg"
    assert resp.headers["content-disposition"] == 'attachment; filename="My_Video_audio.mp3"'
    assert source.opened[-1][1] == AudioPreference(target_quality="highestaudio", container_hint="mp3")

    resp = client.get("/api/download", params={"videoId": "abc123", "quality": "audio", "format": "wav"})
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "audio/wav"
    assert resp.headers["content-disposition"] == 'attachment; filename="My_Video_audio.wav"'
    assert source.opened[-1][1] == AudioPreference(target_quality="highestaudio", container_hint="m4a")


def test_download_exact_itag():
    source = FakeMediaSource(make_info([raw("18"), raw("22", quality_label="720p")]))
    resp = build_client(source).get("/api/download", params={"videoId": "abc123", "itag": "22"})
    assert resp.status_code == 200
    assert source.opened[0][1] == ExactId("22")


def test_download_strips_title_and_percent_encodes_filename():
    source = FakeMediaSource(make_info([raw("22", quality_label="720p")], title="Ünïcode (remix) 100%"))
    resp = build_client(source).get(
        "/api/download", params={"videoId": "abc123", "itag": "22", "quality": "720p 60fps"}
    )
    assert resp.status_code == 200
    disposition = resp.headers["content-disposition"]
    assert disposition == 'attachment; filename="ncode_remix_100_720p%2060fps.mp4"'
    assert unquote(disposition.split('"')[1]) == "ncode_remix_100_720p 60fps.mp4"


def test_download_no_matching_format_is_500():
    source = FakeMediaSource(make_info([raw("135", quality_label="480p")]))
    resp = build_client(source).get(
        "/api/download", params={"videoId": "abc123", "quality": "720p", "format": "mp4"}
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": TH["format_not_found"]}
    assert source.streams == []


def test_download_no_matching_format_details_in_development():
    source = FakeMediaSource(open_error=NoMatchingFormatError())
    resp = build_client(source, Settings(environment="development", locale="en")).get(
        "/api/download", params={"videoId": "abc123"}
    )
    assert resp.status_code == 500
    assert resp.json() == {"error": EN["format_not_found"], "details": "No such format found"}


def test_download_missing_input_is_400_without_resolver_call(client, source):
    resp = client.get("/api/download", params={"quality": "720p"})
    assert resp.status_code == 400
    assert resp.json() == {"error": TH["missing_input"]}
    assert source.validated == []
    assert source.fetched == []
    assert source.opened == []


def test_download_invalid_url_is_400():
    source = FakeMediaSource(valid=False)
    resp = build_client(source).get("/api/download", params={"url": "ftp://nowhere"})
    assert resp.status_code == 400
    assert resp.json() == {"error": TH["invalid_url"]}


def test_download_resolver_failure_is_500():
    source = FakeMediaSource(info_error=ResolverError("Private video"))
    resp = build_client(source).get("/api/download", params={"videoId": "abc123"})
    assert resp.status_code == 500
    assert resp.json() == {"error": TH["private_video"]}


def test_download_stream_failure_before_first_chunk_is_500():
    source = FakeMediaSource(fail_at=0)
    resp = build_client(source).get("/api/download", params={"videoId": "abc123"})
    assert resp.status_code == 500
    assert resp.headers["content-type"] == "application/json"
    assert resp.json() == {"error": TH["stream_failed"]}
    assert "content-disposition" not in resp.headers
    assert source.streams[0].closed is True


def test_download_empty_stream_completes():
    source = FakeMediaSource(chunks=())
    resp = build_client(source).get("/api/download", params={"videoId": "abc123"})
    assert resp.status_code == 200
    assert resp.content == b""
    assert source.streams[0].closed is True
