import json

from loguru import logger
from redis.asyncio import Redis

from resort_bookings.settings import AVAILABILITY_CACHE_TTL, REDIS_URL

_redis: Redis | None = None

# Writes the payload only if the cached copy is older. A publisher that
# committed earlier but reaches Redis later cannot overwrite a newer value.
_PUBLISH_IF_NEWER = """
local current = redis.call('GET', KEYS[1])
if current then
    local ok, cached = pcall(cjson.decode, current)
    if ok and type(cached) == 'table' and cached['version']
        and tonumber(cached['version']) >= tonumber(ARGV[1]) then
        return 0
    end
end
redis.call('SET', KEYS[1], ARGV[3], 'EX', ARGV[2])
return 1
"""


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(REDIS_URL, decode_responses=True)
    return _redis


def _availability_key(date_key: str) -> str:
    return f"availability:{date_key}"


async def get_availability_cache(date_key: str) -> dict | None:
    try:
        data = await get_redis().get(_availability_key(date_key))
        return json.loads(data) if data else None
    except Exception:
        logger.opt(exception=True).warning(
            "Redis get failed, skipping availability cache"
        )
        return None


async def set_availability_cache(
    date_key: str, availability: dict, version: int
) -> None:
    """
    Publish a committed snapshot. ``version`` is the snapshot row's counter;
    Redis keeps whichever publish carries the highest one.
    """
    payload = json.dumps({**availability, "version": version})
    try:
        await get_redis().eval(
            _PUBLISH_IF_NEWER,
            1,
            _availability_key(date_key),
            version,
            AVAILABILITY_CACHE_TTL,
            payload,
        )
    except Exception:
        logger.opt(exception=True).warning(
            "Redis set failed, skipping availability cache"
        )


async def invalidate_availability_cache(date_key: str) -> None:
    try:
        await get_redis().delete(_availability_key(date_key))
    except Exception:
        logger.opt(exception=True).warning(
            "Redis invalidate failed for availability cache"
        )
