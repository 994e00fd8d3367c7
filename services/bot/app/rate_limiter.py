"""
Sliding-window admission control per account.

The window is measured back from "now" on every check, so capacity frees up
exactly when the oldest admitted submission ages out.
"""

import threading
import time
import uuid
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import redis

from shared.app_logging.logger import get_logger
from shared.config.settings import Settings, get_settings
from shared.utils.redis_client import get_redis_client

logger = get_logger("bot.rate_limiter")

DEFAULT_LIMIT = 5
DEFAULT_WINDOW_MS = 60_000

Clock = Callable[[], float]


def _now_ms() -> float:
    return time.time() * 1000


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after_ms: Optional[float] = None


class RateLimiter:
    """In-process limiter; state is lost on restart."""

    def __init__(self, limit: int = DEFAULT_LIMIT, window_ms: float = DEFAULT_WINDOW_MS, clock: Optional[Clock] = None):
        self.limit = limit
        self.window_ms = window_ms
        self._clock = clock or _now_ms
        self._timestamps: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def check(self, identity: str, limit: Optional[int] = None, window_ms: Optional[float] = None) -> RateLimitDecision:
        limit = self.limit if limit is None else limit
        window_ms = self.window_ms if window_ms is None else window_ms
        now = self._clock()

        with self._lock:
            recent = [ts for ts in self._timestamps.get(identity, []) if now - ts < window_ms]
            if len(recent) >= limit:
                self._timestamps[identity] = recent
                oldest = recent[0] if recent else now
                return RateLimitDecision(allowed=False, retry_after_ms=window_ms - (now - oldest))
            recent.append(now)
            self._timestamps[identity] = recent
        return RateLimitDecision(allowed=True)

    def cleanup(self, window_ms: Optional[float] = None) -> int:
        """Forget identities with no submissions left in the window."""
        window_ms = self.window_ms if window_ms is None else window_ms
        now = self._clock()
        removed = 0
        with self._lock:
            for identity in list(self._timestamps):
                recent = [ts for ts in self._timestamps[identity] if now - ts < window_ms]
                if recent:
                    self._timestamps[identity] = recent
                else:
                    del self._timestamps[identity]
                    removed += 1
        return removed


class RedisRateLimiter:
    """Limiter shared by every bot instance, one sorted set per identity.

    Scores and members are admission timestamps in milliseconds. Redis
    failures admit the submission.
    """

    def __init__(
        self,
        client: redis.Redis,
        limit: int = DEFAULT_LIMIT,
        window_ms: float = DEFAULT_WINDOW_MS,
        clock: Optional[Clock] = None,
        key_prefix: str = "linkshelf:ratelimit:",
    ):
        self.limit = limit
        self.window_ms = window_ms
        self.key_prefix = key_prefix
        self._client = client
        self._clock = clock or _now_ms

    def _key(self, identity: str) -> str:
        return f"{self.key_prefix}{identity}"

    def check(self, identity: str, limit: Optional[int] = None, window_ms: Optional[float] = None) -> RateLimitDecision:
        limit = self.limit if limit is None else limit
        window_ms = self.window_ms if window_ms is None else window_ms
        key = self._key(identity)

        try:
            with self._client.pipeline() as pipe:
                while True:
                    now = self._clock()
                    try:
                        pipe.watch(key)
                        recent = pipe.zrangebyscore(key, f"({now - window_ms}", "+inf", withscores=True)
                        if len(recent) >= limit:
                            pipe.unwatch()
                            oldest = recent[0][1] if recent else now
                            return RateLimitDecision(allowed=False, retry_after_ms=window_ms - (now - oldest))

                        pipe.multi()
                        pipe.zremrangebyscore(key, "-inf", now - window_ms)
                        pipe.zadd(key, {f"{now}:{uuid.uuid4().hex}": now})
                        pipe.pexpire(key, max(int(window_ms), 1))
                        pipe.execute()
                        return RateLimitDecision(allowed=True)
                    except redis.WatchError:
                        logger.debug(f"Concurrent update on {key}, retrying check")
                        continue
        except redis.RedisError as e:
            logger.error(f"Redis rate limit check failed for {identity}: {e}")
            return RateLimitDecision(allowed=True)

    def cleanup(self, window_ms: Optional[float] = None) -> int:
        """Drop expired entries; keys also expire on their own after one window."""
        window_ms = self.window_ms if window_ms is None else window_ms
        now = self._clock()
        removed = 0
        try:
            for key in self._client.scan_iter(match=f"{self.key_prefix}*"):
                self._client.zremrangebyscore(key, "-inf", now - window_ms)
                if self._client.zcard(key) == 0:
                    self._client.delete(key)
                    removed += 1
        except redis.RedisError as e:
            logger.error(f"Redis rate limit cleanup failed: {e}")
        return removed


def create_rate_limiter(settings: Optional[Settings] = None):
    """Build the limiter selected by RATE_LIMIT_BACKEND."""
    settings = settings or get_settings()
    limit = settings.service.rate_limit_max
    window_ms = settings.service.rate_limit_window_ms

    if settings.service.rate_limit_backend == "redis":
        logger.info("Using Redis-backed rate limiter")
        return RedisRateLimiter(get_redis_client("bot").client, limit=limit, window_ms=window_ms)

    logger.info("Using in-memory rate limiter")
    return RateLimiter(limit=limit, window_ms=window_ms)
