from fastapi import HTTPException, Request
from redis.exceptions import RedisError
import uuid
from tubeproxy.infra.redis import get_redis
from tubeproxy.config.settings import config
from tubeproxy.utils.locale import get_locale
from tubeproxy.i18n import i18n
import functools
import logging

logger = logging.getLogger(__name__)


class ConcurrencyLimiter:
    """Concurrent download limiter with atomic operations"""

    def __init__(self):
        self.lua_script = """
        local counter_key = KEYS[1]
        local slot_key = KEYS[2]
        local limit = tonumber(ARGV[1])
        local slot_ttl = tonumber(ARGV[2])
        local counter_ttl = tonumber(ARGV[3])

        local current = tonumber(redis.call('GET', counter_key) or "0")
        if current >= limit then
            return 0
        end

        redis.call('INCR', counter_key)
        redis.call('EXPIRE', counter_key, counter_ttl)
        redis.call('SETEX', slot_key, slot_ttl, "1")

        return 1
        """

    async def __call__(self, request: Request):
        redis = get_redis()
        if not redis:
            return True

        slot_key = f"active_download:{uuid.uuid4()}"
        slot_ttl = config.download.timeout_seconds + 60
        counter_ttl = slot_ttl * 2

        try:
            allowed = await redis.eval(
                self.lua_script,
                2,
                "active_downloads_count",
                slot_key,
                config.download.max_concurrent,
                slot_ttl,
                counter_ttl
            )
        except (RedisError, OSError):
            return True

        if not allowed:
            locale = get_locale(request.headers.get("accept-language"))
            _ = functools.partial(i18n.get, locale=locale)
            raise HTTPException(
                status_code=503,
                detail=_("error.server_busy", max=config.download.max_concurrent)
            )

        request.state.download_slot_key = slot_key
        return True


async def release_download_slot(request: Request) -> None:
    """Release download slot; safe to call more than once"""
    slot_key = getattr(request.state, "download_slot_key", None)
    if not slot_key:
        return
    request.state.download_slot_key = None

    redis = get_redis()
    if not redis:
        return

    try:
        if await redis.delete(slot_key):
            await redis.decr("active_downloads_count")
    except (RedisError, OSError) as e:
        logger.warning(f"Failed to release download slot {slot_key}: {e}")


concurrency_limiter = ConcurrencyLimiter()
