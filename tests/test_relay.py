import asyncio
from urllib.parse import unquote

import pytest

from tubeproxy.main import app
from tubeproxy.models.internal import StreamHandle
from tubeproxy.services.backends import get_extractor
from tubeproxy.services.extractor import ExtractorBackend
from tubeproxy.services.relay import RelayResponse
from tubeproxy.utils.filename import content_disposition


class Tracker:
    def __init__(self):
        self.calls = 0

    async def __call__(self):
        self.calls += 1


async def failing_chunks():
    yield b"first chunk"
    raise RuntimeError("upstream connection reset")


async def endless_chunks():
    while True:
        yield b"x" * 1024
        await asyncio.sleep(0.01)


class StubExtractor(ExtractorBackend):
    name = "stub"

    def __init__(self, handle):
        self.handle = handle

    async def fetch_metadata(self, url):
        raise NotImplementedError

    async def open_stream(self, request, is_disconnected=None):
        return self.handle


def make_handle(chunks, tmp_path):
    temp_file = tmp_path / "1700000000000-abcdefabcdef.mp4"
    temp_file.write_bytes(b"data")
    return StreamHandle(
        chunks=chunks,
        media_type="video/mp4",
        filename="clip.mp4",
        temp_path=str(temp_file),
    ), temp_file


@pytest.mark.asyncio
async def test_mid_stream_error_aborts_and_releases(client, tmp_path):
    handle, temp_file = make_handle(failing_chunks(), tmp_path)
    tracker = Tracker()
    handle.add_closer(tracker)
    app.dependency_overrides[get_extractor] = lambda: StubExtractor(handle)

    # Headers are already sent, so the body is aborted rather than turned into a JSON error
    with pytest.raises(Exception):
        await client.get("/download", params={"url": "https://youtu.be/aaaaaaaaaaa", "format": "video"})

    assert handle.closed
    assert tracker.calls == 1
    assert not temp_file.exists()


@pytest.mark.asyncio
async def test_client_disconnect_releases_handle(tmp_path):
    handle, temp_file = make_handle(endless_chunks(), tmp_path)
    tracker = Tracker()
    handle.add_closer(tracker)
    sent = []

    async def receive():
        await asyncio.sleep(0.1)
        return {"type": "http.disconnect"}

    async def send(message):
        sent.append(message)

    scope = {"type": "http", "method": "GET", "path": "/download", "headers": []}
    await asyncio.wait_for(RelayResponse(handle)(scope, receive, send), timeout=5)

    assert sent[0]["type"] == "http.response.start"
    assert not any(m["type"] == "http.response.body" and not m.get("more_body", False) for m in sent)
    assert handle.closed
    assert tracker.calls == 1
    assert not temp_file.exists()


@pytest.mark.asyncio
async def test_handle_close_is_idempotent(tmp_path):
    handle, temp_file = make_handle(endless_chunks(), tmp_path)
    tracker = Tracker()
    handle.add_closer(tracker)

    await handle.aclose()
    await handle.aclose()

    assert tracker.calls == 1
    assert not temp_file.exists()


@pytest.mark.asyncio
async def test_failing_closer_does_not_block_cleanup(tmp_path):
    handle, temp_file = make_handle(endless_chunks(), tmp_path)

    async def broken():
        raise ConnectionError("redis went away")

    handle.add_closer(broken)
    await handle.aclose()
    assert not temp_file.exists()


@pytest.mark.parametrize("filename", [
    "plain.mp4",
    'quote " and slash / .mp4',
    "日本語のタイトル.m4a",
    "semi;colon, comma.webm",
])
def test_content_disposition_round_trip(filename):
    header = content_disposition(filename)
    header.encode("ascii")
    assert header.count('"') == 2
    assert unquote(header.split("filename*=UTF-8''", 1)[1]) == filename
