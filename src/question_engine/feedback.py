from __future__ import annotations

import logging
from datetime import datetime

from .errors import ForbiddenSuggestionError, SuggestionNotFoundError
from .models import SuggestionRecord
from .persistence import utcnow
from .stores.repository import ResearchRepository

logger = logging.getLogger(__name__)


class FeedbackTracker:
    """Moves persisted suggestions through displayed / clicked / dismissed / executed."""

    def __init__(self, repo: ResearchRepository):
        self.repo = repo

    async def mark_displayed(self, user_id: str, questions: list[str], *, at: datetime | None = None) -> int:
        if not questions:
            return 0
        try:
            return await self.repo.mark_displayed(user_id, questions, at=at or utcnow())
        except Exception as e:
            logger.warning("Could not mark %d questions displayed for user=%s: %s", len(questions), user_id, e)
            return 0

    async def _owned(self, user_id: str, suggestion_id: str) -> SuggestionRecord:
        record = await self.repo.get_suggestion(suggestion_id)
        if record is None:
            raise SuggestionNotFoundError(suggestion_id)
        if record.user_id != user_id:
            raise ForbiddenSuggestionError(suggestion_id)
        return record

    async def track_click(self, user_id: str, suggestion_id: str) -> None:
        await self._owned(user_id, suggestion_id)
        await self.repo.mark_clicked(suggestion_id, at=utcnow())
        logger.info("Question %s clicked by user=%s", suggestion_id, user_id)

    async def track_dismiss(self, user_id: str, suggestion_id: str) -> None:
        await self._owned(user_id, suggestion_id)
        await self.repo.mark_dismissed(suggestion_id, at=utcnow())
        logger.info("Question %s dismissed by user=%s", suggestion_id, user_id)

    async def track_execution(self, user_id: str, question: str, query_id: str) -> bool:
        """Link an executed query back to the most recently clicked matching suggestion."""
        try:
            linked = await self.repo.mark_executed(user_id, question, query_id, at=utcnow())
        except Exception as e:
            logger.warning("Could not track execution of %r for user=%s: %s", question, user_id, e)
            return False
        if not linked:
            logger.debug("No clicked suggestion matches executed query %s for user=%s", query_id, user_id)
        return linked
