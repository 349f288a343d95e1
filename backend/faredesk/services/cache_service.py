"""Redis cache service — key-value store for markup lookups and booking drafts."""

import json
import logging
from typing import Any

import redis.asyncio as redis

from faredesk.config import settings

logger = logging.getLogger(__name__)

# TTLs in seconds
TTL_MARKUP = settings.markup_cache_ttl
TTL_DRAFT = settings.draft_ttl


class CacheService:
    """Redis-backed key-value store. Every failure degrades to a miss."""

    def __init__(self, url: str | None = None):
        self._url = url or settings.redis_url
        self._redis: redis.Redis | None = None

    async def _get_redis(self) -> redis.Redis | None:
        if self._redis is None:
            try:
                self._redis = redis.from_url(
                    self._url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._redis.ping()
            except Exception as e:
                logger.warning(f"Redis unavailable, cache disabled: {e}")
                self._redis = None
                return None
        return self._redis

    async def get(self, key: str) -> Any | None:
        """Get a value from cache. Returns None on miss or error."""
        try:
            r = await self._get_redis()
            if r is None:
                return None
            raw = await r.get(key)
            if raw is None:
                return None
            return json.loads(raw)
        except Exception:
            return None

    async def set(self, key: str, value: Any, ttl: int = TTL_MARKUP) -> bool:
        """Set a value in cache with TTL. Returns False on error."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.set(key, json.dumps(value, default=str), ex=ttl)
            return True
        except Exception:
            return False

    async def delete(self, key: str) -> bool:
        """Delete a key."""
        try:
            r = await self._get_redis()
            if r is None:
                return False
            await r.delete(key)
            return True
        except Exception:
            return False

    # Typed helpers

    def markup_key(self, airline: str, role: str, origin: str | None, dest: str | None) -> str:
        return f"markup:{airline}:{role}:{origin or '*'}:{dest or '*'}"

    def draft_key(self, trace_id: str) -> str:
        return f"draft:{trace_id}"

    def pricing_key(self, trace_id: str) -> str:
        return f"pricing:{trace_id}"

    async def get_markup(self, airline: str, role: str, origin: str | None, dest: str | None) -> str | None:
        return await self.get(self.markup_key(airline, role, origin, dest))

    async def set_markup(self, airline: str, role: str, origin: str | None, dest: str | None, percent: str):
        await self.set(self.markup_key(airline, role, origin, dest), percent, TTL_MARKUP)

    async def get_draft(self, trace_id: str) -> dict | None:
        return await self.get(self.draft_key(trace_id))

    async def set_draft(self, trace_id: str, data: dict):
        await self.set(self.draft_key(trace_id), data, TTL_DRAFT)

    async def clear_draft(self, trace_id: str):
        await self.delete(self.draft_key(trace_id))

    async def get_pricing(self, trace_id: str) -> dict | None:
        return await self.get(self.pricing_key(trace_id))

    async def set_pricing(self, trace_id: str, data: dict):
        await self.set(self.pricing_key(trace_id), data, TTL_DRAFT)

    async def invalidate_markups(self, airline: str, role: str) -> int:
        """Drop every memoized markup for an airline and role. Returns keys removed."""
        try:
            r = await self._get_redis()
            if r is None:
                return 0
            keys = [k async for k in r.scan_iter(match=f"markup:{airline}:{role}:*")]
            if keys:
                await r.delete(*keys)
            return len(keys)
        except Exception:
            return 0

    async def close(self):
        if self._redis:
            await self._redis.aclose()
            self._redis = None


cache_service = CacheService()
