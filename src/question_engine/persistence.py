"""Two-tier storage for ranked suggestions: a short-TTL cache in front of durable rows."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from .models import RankedQuestion, SuggestionRecord
from .stores.cache import QuestionCache
from .stores.repository import ResearchRepository

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SuggestionStore:
    def __init__(
        self,
        repo: ResearchRepository,
        cache: QuestionCache,
        *,
        cache_ttl_seconds: int = 300,
        suggestion_ttl: timedelta = timedelta(hours=24),
    ):
        self.repo = repo
        self.cache = cache
        self.cache_ttl_seconds = cache_ttl_seconds
        self.suggestion_ttl = suggestion_ttl

    async def cached(self, user_id: str) -> list[RankedQuestion] | None:
        """Cached ranked list, or None on a miss. An unreachable cache counts as a miss."""
        try:
            raw = await self.cache.get(user_id)
        except Exception as e:
            logger.warning("Suggestion cache read failed for user=%s, treating as miss: %s", user_id, e)
            return None
        if raw is None:
            return None
        try:
            return [RankedQuestion.model_validate(item) for item in raw]
        except ValidationError as e:
            # stale payload shape; treat as a miss
            logger.warning("Ignoring unreadable cache entry for user=%s: %s", user_id, e)
            return None

    async def remember(self, user_id: str, questions: list[RankedQuestion]) -> None:
        payload = [q.model_dump(mode="json", by_alias=True) for q in questions]
        try:
            await self.cache.set(user_id, payload, ttl_seconds=self.cache_ttl_seconds)
        except Exception as e:
            logger.warning("Suggestion cache write failed for user=%s: %s", user_id, e)

    async def invalidate(self, user_id: str) -> None:
        try:
            await self.cache.delete(user_id)
        except Exception as e:
            logger.warning("Suggestion cache clear failed for user=%s: %s", user_id, e)

    async def persist(self, user_id: str, questions: list[RankedQuestion], *, now: datetime | None = None) -> int:
        """Write new suggestions with a fixed expiry. Never raises; returns rows actually inserted."""
        now = now or utcnow()
        try:
            active = await self.repo.active_suggestion_texts(user_id, now=now)
            expires_at = now + self.suggestion_ttl
            records = [
                SuggestionRecord.from_ranked(user_id, q, generated_at=now, expires_at=expires_at)
                for q in questions
                if q.question.lower() not in active
            ]
            if not records:
                return 0
            written = await self.repo.create_suggestions(records)
            logger.info("Persisted %d of %d suggested questions for user=%s", written, len(records), user_id)
            return written
        except Exception:
            logger.exception("Failed to persist suggested questions for user=%s", user_id)
            return 0

    async def cleanup_expired(self, *, now: datetime | None = None) -> int:
        deleted = await self.repo.delete_expired(now=now or utcnow())
        if deleted:
            logger.info("Deleted %d expired suggested questions", deleted)
        return deleted

    async def run_cleanup_loop(self, interval_seconds: float) -> None:
        """Purge expired rows every ``interval_seconds`` until cancelled."""
        while True:
            try:
                await self.cleanup_expired()
            except Exception as e:
                logger.warning("Expired suggestion cleanup failed: %s", e)
            await asyncio.sleep(interval_seconds)
