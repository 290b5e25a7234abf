import logging
import math
import time
from dataclasses import dataclass
from typing import Dict, Optional

from limits import RateLimitItemPerSecond
from limits.aio.storage import MemoryStorage, RedisStorage, Storage
from limits.aio.strategies import FixedWindowRateLimiter

from vision_gateway.utils.config import Settings
from vision_gateway.utils.errors import RateLimitError

logger = logging.getLogger(__name__)

RATE_LIMIT_NAMESPACE = "vision-gateway"


@dataclass(frozen=True)
class RateLimitStatus:
    limit: int
    remaining: int
    reset_after: float

    def headers(self) -> Dict[str, str]:
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(max(0, math.ceil(self.reset_after))),
        }


def build_storage(settings: Settings) -> Storage:
    """Counter storage for the configured backend; redis shares counters across instances"""
    if settings.rate_limit_backend == "redis":
        uri = settings.redis_url
        if not uri.startswith("async+"):
            uri = f"async+{uri}"
        return RedisStorage(
            uri,
            implementation="redispy",
            key_prefix=settings.redis_key_prefix,
            wrap_exceptions=True,
        )
    return MemoryStorage()


class RateLimiter:
    """Fixed-window request limiter keyed by caller identity"""

    def __init__(self, storage: Storage, max_requests: int, window_ms: int):
        self.storage = storage
        self.max_requests = max_requests
        # limits counts windows in whole seconds
        self.item = RateLimitItemPerSecond(
            max_requests,
            max(1, math.ceil(window_ms / 1000)),
            namespace=RATE_LIMIT_NAMESPACE,
        )
        self._strategy = FixedWindowRateLimiter(storage)

    @classmethod
    def from_settings(cls, settings: Settings) -> "RateLimiter":
        return cls(build_storage(settings), settings.rate_limit_max, settings.rate_limit_window_ms)

    @property
    def backend(self) -> str:
        return "redis" if isinstance(self.storage, RedisStorage) else "memory"

    async def check(self, identity: str) -> RateLimitStatus:
        allowed = await self._strategy.hit(self.item, identity)
        stats = await self._strategy.get_window_stats(self.item, identity)
        status = RateLimitStatus(
            limit=self.max_requests,
            remaining=stats.remaining,
            reset_after=stats.reset_time - time.time(),
        )
        if not allowed:
            logger.warning(f"Rate limit exceeded for {identity.split(':', 1)[0]} identity")
            headers = status.headers()
            headers["Retry-After"] = headers["RateLimit-Reset"]
            raise RateLimitError(
                f"Too many requests, please retry after {headers['Retry-After']} seconds",
                headers=headers,
            )
        return status

    async def reset(self, identity: Optional[str] = None) -> None:
        if identity is None:
            await self.storage.reset()
        else:
            await self.storage.clear(self.item.key_for(identity))

    async def healthy(self) -> bool:
        return await self.storage.check()
