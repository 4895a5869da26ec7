import copy

import httpx
import pytest
from yt_dlp.utils import DownloadError

from fake_ytdlp import info_for, payload_for
from tubeproxy.main import app
from tubeproxy.services.backends import get_extractor
from tubeproxy.services.direct import DirectStreamExtractor


def direct_info(video_id):
    info = copy.deepcopy(info_for(video_id))
    for f in info["formats"]:
        f["url"] = f"https://media.example/{video_id}/{f['format_id']}"
        f["protocol"] = "https"
        if f["format_id"] == "137":
            f["protocol"] = "m3u8_native"
    return info


def upstream(status=200):
    requests = []

    def handler(request):
        requests.append(request)
        video_id, format_id = request.url.path.strip("/").split("/")
        body = payload_for(video_id, audio=format_id in ("140", "251"))
        return httpx.Response(status, content=body if status == 200 else b"nope")

    return handler, requests


def use_direct(video_id, status=200, error=None):
    handler, requests = upstream(status)
    extractor = DirectStreamExtractor(transport=httpx.MockTransport(handler))

    def extract(url):
        if error:
            raise DownloadError(error)
        return direct_info(video_id)

    extractor._extract_info_sync = extract
    app.dependency_overrides[get_extractor] = lambda: extractor
    return requests


@pytest.mark.asyncio
async def test_direct_video_info(client):
    use_direct("aaaaaaaaaaa")
    response = await client.get("/video-info", params={"url": "https://youtu.be/aaaaaaaaaaa"})
    assert response.status_code == 200
    assert response.json()["recommended"] == {"video": "22", "audio": "140"}


@pytest.mark.asyncio
async def test_direct_download_audio(client):
    requests = use_direct("aaaaaaaaaaa")
    response = await client.get("/download", params={"url": "https://youtu.be/aaaaaaaaaaa", "format": "audio"})
    assert response.status_code == 200
    assert response.content == payload_for("aaaaaaaaaaa", audio=True)
    assert response.headers["content-type"] == "audio/mp4"
    assert requests[0].url.path == "/aaaaaaaaaaa/140"
    assert requests[0].headers["accept-encoding"] == "identity"


@pytest.mark.asyncio
async def test_direct_download_by_itag(client):
    requests = use_direct("aaaaaaaaaaa")
    response = await client.get("/download", params={"videoId": "aaaaaaaaaaa", "itag": "18"})
    assert response.status_code == 200
    assert response.content == payload_for("aaaaaaaaaaa", audio=False)
    assert requests[0].url.path == "/aaaaaaaaaaa/18"


@pytest.mark.asyncio
async def test_direct_unknown_itag(client):
    requests = use_direct("aaaaaaaaaaa")
    response = await client.get("/download", params={"url": "https://youtu.be/aaaaaaaaaaa", "itag": "9999"})
    assert response.status_code == 404
    assert response.json() == {"error": "Format 9999 is not available for this video"}
    assert requests == []


@pytest.mark.asyncio
async def test_direct_audio_on_progressive_only(client):
    requests = use_direct("bbbbbbbbbbb")
    response = await client.get("/download", params={"url": "https://youtu.be/bbbbbbbbbbb", "format": "audio"})
    assert response.status_code == 404
    assert response.json() == {"error": "This video has no audio-only format available"}
    assert requests == []


@pytest.mark.asyncio
async def test_direct_manifest_format_rejected(client):
    requests = use_direct("aaaaaaaaaaa")
    response = await client.get("/download", params={"url": "https://youtu.be/aaaaaaaaaaa", "itag": "137"})
    assert response.status_code == 404
    assert requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("status,expected", [(403, 403), (404, 404), (429, 503), (502, 500)])
async def test_direct_upstream_status(client, status, expected):
    use_direct("aaaaaaaaaaa", status=status)
    response = await client.get("/download", params={"url": "https://youtu.be/aaaaaaaaaaa", "format": "video"})
    assert response.status_code == expected


@pytest.mark.asyncio
async def test_direct_extractor_error(client):
    use_direct("ppppppppppp", error="ERROR: [youtube] ppppppppppp: Private video")
    response = await client.get("/video-info", params={"url": "https://youtu.be/ppppppppppp"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_direct_rejects_live_stream(client):
    requests = use_direct("lllllllllll")
    info = await client.get("/video-info", params={"url": "https://youtu.be/lllllllllll"})
    download = await client.get("/download", params={"url": "https://youtu.be/lllllllllll", "format": "video"})
    assert info.status_code == 404
    assert info.json() == {"error": "Live streams are not supported"}
    assert download.status_code == 404
    assert requests == []
