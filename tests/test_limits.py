import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from tubeproxy.core.state import state


class StubRedis:
    def __init__(self, rate=(1, 0), slot=1, fail=False):
        self.rate = list(rate)
        self.slot = slot
        self.fail = fail
        self.deleted = []
        self.decrements = 0
        self.keys = []

    async def eval(self, script, numkeys, *args):
        self.keys.append(args[0])
        if self.fail:
            raise RedisConnectionError("connection refused")
        return self.rate if numkeys == 1 else self.slot

    async def delete(self, key):
        self.deleted.append(key)
        return 1

    async def decr(self, key):
        self.decrements += 1

    async def ping(self):
        return True


@pytest.mark.asyncio
async def test_rate_limited(client, monkeypatch):
    monkeypatch.setattr(state, "redis", StubRedis(rate=(0, 42)))
    response = await client.get("/video-info", params={"url": "https://youtu.be/aaaaaaaaaaa"})
    assert response.status_code == 429
    assert response.headers["retry-after"] == "42"
    assert response.json() == {"error": "Too many requests. Please retry in 42 seconds."}


@pytest.mark.asyncio
async def test_server_busy(client, monkeypatch):
    monkeypatch.setattr(state, "redis", StubRedis(slot=0))
    response = await client.get("/download", params={"url": "https://youtu.be/aaaaaaaaaaa", "format": "video"})
    assert response.status_code == 503
    assert set(response.json()) == {"error"}


@pytest.mark.asyncio
async def test_slot_released_on_failed_download(client, monkeypatch):
    redis = StubRedis()
    monkeypatch.setattr(state, "redis", redis)
    response = await client.get("/download", params={"url": "https://youtu.be/aaaaaaaaaaa", "format": "mp3"})
    assert response.status_code == 400
    assert len(redis.deleted) == 1
    assert redis.deleted[0].startswith("active_download:")
    assert redis.decrements == 1


@pytest.mark.asyncio
async def test_slot_released_after_stream(client, fake_ytdlp, monkeypatch):
    redis = StubRedis()
    monkeypatch.setattr(state, "redis", redis)
    response = await client.get("/download", params={"url": "https://youtu.be/aaaaaaaaaaa", "format": "audio"})
    assert response.status_code == 200
    assert redis.decrements == 1


@pytest.mark.asyncio
async def test_redis_failure_fails_open(client, monkeypatch):
    monkeypatch.setattr(state, "redis", StubRedis(fail=True))
    response = await client.get("/download", params={"url": "https://youtu.be/aaaaaaaaaaa", "format": "mp3"})
    # Validation runs, so both limiters let the request through
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_health_reports_redis(client, monkeypatch):
    monkeypatch.setattr(state, "redis", StubRedis())
    response = await client.get("/health")
    assert response.json() == {"status": "ok", "redis": "connected"}


@pytest.mark.asyncio
async def test_rate_limit_key_per_route_and_client(client, monkeypatch):
    redis = StubRedis()
    monkeypatch.setattr(state, "redis", redis)
    await client.get("/video-info", params={"url": "https://vimeo.com/1"})
    await client.get("/download", params={"url": "https://vimeo.com/1", "format": "video"})
    assert redis.keys[0] == "rate:video_info:127.0.0.1"
    assert redis.keys[1] == "rate:download_video:127.0.0.1"
