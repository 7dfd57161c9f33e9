from __future__ import annotations

import json
import logging
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class QuestionCache(Protocol):
    async def get(self, user_id: str) -> list[dict[str, Any]] | None: ...

    async def set(self, user_id: str, questions: list[dict[str, Any]], *, ttl_seconds: int) -> None: ...

    async def delete(self, user_id: str) -> None: ...


class RedisQuestionCache:
    """Short-lived per-user cache of the ranked list.

    Redis being down is never an error here: reads become misses and writes
    become no-ops.
    """

    def __init__(self, redis_url: str, *, prefix: str = "suggested_questions"):
        import redis.asyncio as redis

        self.prefix = prefix
        self._r = redis.from_url(redis_url)

    def key(self, user_id: str) -> str:
        return f"{self.prefix}:{user_id}"

    async def close(self) -> None:
        await self._r.aclose()

    async def get(self, user_id: str) -> list[dict[str, Any]] | None:
        try:
            raw = await self._r.get(self.key(user_id))
        except Exception as e:
            logger.warning("Redis cache read unavailable for %s: %s", user_id, e)
            return None
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning("Discarding corrupt cache entry for %s: %s", user_id, e)
            return None
        return data if isinstance(data, list) else None

    async def set(self, user_id: str, questions: list[dict[str, Any]], *, ttl_seconds: int) -> None:
        try:
            await self._r.setex(self.key(user_id), ttl_seconds, json.dumps(questions, ensure_ascii=False))
        except Exception as e:
            logger.warning("Redis cache write unavailable for %s: %s", user_id, e)

    async def delete(self, user_id: str) -> None:
        try:
            await self._r.delete(self.key(user_id))
        except Exception as e:
            logger.warning("Redis cache clear unavailable for %s: %s", user_id, e)
