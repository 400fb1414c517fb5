"""Auto-save throttle.

Players save on every answer change, so each (learner, attempt) pair gets
its own leaky bucket in Redis: ``RATE_LIMIT_AUTOSAVE_BURST`` saves up
front, refilled at ``RATE_LIMIT_AUTOSAVE_RPM`` per minute. An empty bucket
raises ``RateLimitedError`` with the wait in ``details``. When Redis is
down the save goes through.
"""

import logging
import time
import uuid

import redis
from redis.commands.core import Script

from quizbank.config import settings
from quizbank.core.errors import RateLimitedError

logger = logging.getLogger(__name__)

# KEYS[1] bucket; ARGV capacity, refill/s, now (s).
# Returns 0 when a token was taken, else ms until the next one.
_LEAKY_BUCKET = """
local capacity = tonumber(ARGV[1])
local rate     = tonumber(ARGV[2])
local now      = tonumber(ARGV[3])

local state  = redis.call('HMGET', KEYS[1], 'tokens', 'ts')
local tokens = tonumber(state[1]) or capacity
local ts     = tonumber(state[2]) or now
tokens = math.min(capacity, tokens + math.max(0, now - ts) * rate)

local wait = 0
if tokens >= 1 then
    tokens = tokens - 1
else
    wait = math.ceil((1 - tokens) / rate * 1000)
end

redis.call('HSET', KEYS[1], 'tokens', tostring(tokens), 'ts', tostring(now))
redis.call('EXPIRE', KEYS[1], math.ceil(capacity / rate) + 1)
return wait
"""

_script: Script | None = None


def _bucket_script() -> Script:
    global _script
    if _script is None:
        client = redis.Redis.from_url(
            settings.REDIS_URL, decode_responses=True, max_connections=10
        )
        _script = client.register_script(_LEAKY_BUCKET)
    return _script


def _bucket_key(user_id: uuid.UUID, attempt_id: uuid.UUID) -> str:
    return f"quizbank:autosave:{user_id}:{attempt_id}"


def _retry_after_ms(key: str) -> int:
    """Take a token from *key*; 0 means go ahead."""
    rpm = settings.RATE_LIMIT_AUTOSAVE_RPM
    if rpm <= 0:
        return 0
    try:
        wait = _bucket_script()(
            keys=[key],
            args=[settings.RATE_LIMIT_AUTOSAVE_BURST, rpm / 60.0, time.time()],
        )
    except redis.RedisError as e:
        logger.warning("Auto-save limiter unavailable, letting save through: %s", e)
        return 0
    return int(wait)


def check_autosave(user_id: uuid.UUID, attempt_id: uuid.UUID) -> None:
    wait_ms = _retry_after_ms(_bucket_key(user_id, attempt_id))
    if wait_ms:
        logger.info(
            "Auto-save throttled: user=%s attempt=%s retry_after_ms=%d",
            user_id, attempt_id, wait_ms,
        )
        raise RateLimitedError(
            "Progress is being saved too often; retry shortly",
            details={"retry_after_ms": wait_ms},
        )
