import functools

from fastapi import HTTPException, Request
from redis.exceptions import RedisError

from tubeproxy.config.settings import config
from tubeproxy.i18n import i18n
from tubeproxy.infra.redis import get_redis
from tubeproxy.utils.locale import get_locale

# Fixed window: INCR, set the expiry on first hit, report TTL once over the limit
RATE_LIMIT_SCRIPT = """
local current = redis.call('INCR', KEYS[1])
if current == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[2])
end
if current > tonumber(ARGV[1]) then
    return {0, redis.call('TTL', KEYS[1])}
end
return {1, 0}
"""


def rate_limit_key(request: Request) -> str:
    """One window per client and route ("video_info", "download_video"), not per raw path"""
    endpoint = request.scope.get("endpoint")
    route = getattr(endpoint, "__name__", None) or request.url.path
    client_ip = request.client.host if request.client else "unknown"
    return f"rate:{route.removeprefix('get_')}:{client_ip}"


class RedisRateLimiter:
    """Per-client request limiter; a no-op without Redis"""

    async def __call__(self, request: Request):
        redis = get_redis()
        if not config.rate_limit.enabled or not redis:
            return True

        try:
            allowed, ttl = await redis.eval(
                RATE_LIMIT_SCRIPT,
                1,
                rate_limit_key(request),
                config.rate_limit.max_requests,
                config.rate_limit.window_seconds
            )
        except (RedisError, OSError):
            # Fail open: the limiter must never take the service down
            return True

        if allowed:
            return True

        locale = get_locale(request.headers.get("accept-language"))
        _ = functools.partial(i18n.get, locale=locale)
        raise HTTPException(
            status_code=429,
            detail=_("error.rate_limit", seconds=ttl),
            headers={"Retry-After": str(ttl)}
        )


rate_limiter = RedisRateLimiter()
