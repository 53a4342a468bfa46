import json
import logging
import time
from typing import Callable

import redis.asyncio as aioredis

from presale_radio.config import settings

logger = logging.getLogger(__name__)


class LiveStatusCache:
    """Short-lived cache of live-status answers, shared through Redis when configured.

    Without REDIS_URL the cache is per-process, which is enough for a single worker.
    """

    def __init__(self, ttl_seconds: int | None = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = settings.LIVE_STATUS_CACHE_SECONDS if ttl_seconds is None else ttl_seconds
        self._redis: aioredis.Redis | None = None
        self._clock = clock
        self._local: dict[str, tuple[float, dict]] = {}

    async def _get_redis(self) -> aioredis.Redis:
        if self._redis is None:
            self._redis = aioredis.from_url(settings.REDIS_URL)
        return self._redis

    @staticmethod
    def _key(broadcaster_id: str) -> str:
        return f"radio:live_status:{broadcaster_id}"

    async def get(self, broadcaster_id: str) -> dict | None:
        if self.ttl_seconds <= 0:
            return None
        if settings.redis_enabled:
            try:
                r = await self._get_redis()
                data = await r.get(self._key(broadcaster_id))
            except Exception as e:
                logger.warning("Live status cache read failed: %s", e)
                return None
            return json.loads(data) if data else None

        hit = self._local.get(broadcaster_id)
        if hit is None:
            return None
        expires_at, payload = hit
        if self._clock() >= expires_at:
            self._local.pop(broadcaster_id, None)
            return None
        return payload

    async def set(self, broadcaster_id: str, payload: dict) -> None:
        if self.ttl_seconds <= 0:
            return
        if settings.redis_enabled:
            try:
                r = await self._get_redis()
                await r.set(self._key(broadcaster_id), json.dumps(payload), ex=self.ttl_seconds)
            except Exception as e:
                logger.warning("Live status cache write failed: %s", e)
            return
        now = self._clock()
        self._evict_expired(now)
        self._local[broadcaster_id] = (now + self.ttl_seconds, payload)

    def _evict_expired(self, now: float) -> None:
        # Ids that are never asked about again would otherwise stay forever
        expired = [key for key, (expires_at, _) in self._local.items() if now >= expires_at]
        for key in expired:
            del self._local[key]

    async def invalidate(self, broadcaster_id: str) -> None:
        self._local.pop(broadcaster_id, None)
        if settings.redis_enabled:
            try:
                r = await self._get_redis()
                await r.delete(self._key(broadcaster_id))
            except Exception as e:
                logger.warning("Live status cache invalidate failed: %s", e)

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
