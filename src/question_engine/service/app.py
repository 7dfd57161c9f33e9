from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from pydantic import BaseModel, Field

from question_engine import __version__
from question_engine.bootstrap import Engine, build_engine
from question_engine.errors import ForbiddenSuggestionError, SuggestionNotFoundError
from question_engine.models import RankedQuestion
from question_engine.settings import settings

from .auth import current_user, require_api_key

logger = logging.getLogger(__name__)


class ExecutedIn(BaseModel):
    question: str = Field(min_length=1)
    query_id: str = Field(min_length=1)


def _questions_out(questions: list[RankedQuestion], **extra) -> dict:
    return {
        "questions": [q.model_dump(mode="json", by_alias=True) for q in questions],
        "count": len(questions),
        "generated": datetime.now(timezone.utc).isoformat(),
        **extra,
    }


def _check_limit(limit: int | None) -> int:
    value = settings.default_limit if limit is None else limit
    if value < 1 or value > settings.max_limit:
        raise HTTPException(
            status_code=400, detail=f"Invalid limit parameter (must be between 1 and {settings.max_limit})"
        )
    return value


def create_app(engine: Engine | None = None, *, run_cleanup: bool = True) -> FastAPI:
    """Build the HTTP app. When ``engine`` is None it is built from settings on startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = engine is None
        app.state.engine = engine if engine is not None else await build_engine(settings)
        cleanup = None
        if run_cleanup:
            cleanup = asyncio.create_task(
                app.state.engine.store.run_cleanup_loop(settings.cleanup_interval_seconds)
            )
        try:
            yield
        finally:
            if cleanup is not None:
                cleanup.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await cleanup
            if owned:
                await app.state.engine.close()

    app = FastAPI(title="Question Engine", version=__version__, lifespan=lifespan)

    def get_engine(request: Request) -> Engine:
        return request.app.state.engine

    @app.get("/health")
    async def health():
        return {"ok": True, "host": os.uname().nodename}

    @app.get("/v1/questions/suggested", dependencies=[Depends(require_api_key)])
    async def suggested(
        background: BackgroundTasks,
        limit: int | None = None,
        user_id: str = Depends(current_user),
        eng: Engine = Depends(get_engine),
    ):
        n = _check_limit(limit)
        questions = await eng.orchestrator.get_top_questions(user_id, n)
        if questions:
            background.add_task(eng.feedback.mark_displayed, user_id, [q.question for q in questions])
        return _questions_out(questions)

    @app.post("/v1/questions/suggested/refresh", dependencies=[Depends(require_api_key)])
    async def refresh(
        limit: int | None = None,
        user_id: str = Depends(current_user),
        eng: Engine = Depends(get_engine),
    ):
        n = _check_limit(limit)
        logger.info("Force refreshing questions for user=%s", user_id)
        await eng.orchestrator.clear_cache(user_id)
        questions = await eng.orchestrator.get_top_questions(user_id, n)
        return _questions_out(questions, refreshed=True)

    @app.post("/v1/questions/{suggestion_id}/click", dependencies=[Depends(require_api_key)])
    async def click(suggestion_id: str, user_id: str = Depends(current_user), eng: Engine = Depends(get_engine)):
        try:
            await eng.feedback.track_click(user_id, suggestion_id)
        except SuggestionNotFoundError:
            raise HTTPException(status_code=404, detail="Question not found")
        except ForbiddenSuggestionError:
            raise HTTPException(status_code=403, detail="Unauthorized to track this question")
        return {"success": True, "questionId": suggestion_id, "message": "Click tracked successfully"}

    @app.post("/v1/questions/{suggestion_id}/dismiss", dependencies=[Depends(require_api_key)])
    async def dismiss(suggestion_id: str, user_id: str = Depends(current_user), eng: Engine = Depends(get_engine)):
        try:
            await eng.feedback.track_dismiss(user_id, suggestion_id)
        except SuggestionNotFoundError:
            raise HTTPException(status_code=404, detail="Question not found")
        except ForbiddenSuggestionError:
            raise HTTPException(status_code=403, detail="Unauthorized to track this question")
        return {"success": True, "questionId": suggestion_id, "message": "Dismissal tracked successfully"}

    @app.post("/v1/questions/executed", dependencies=[Depends(require_api_key)])
    async def executed(payload: ExecutedIn, user_id: str = Depends(current_user), eng: Engine = Depends(get_engine)):
        linked = await eng.feedback.track_execution(user_id, payload.question, payload.query_id)
        # a new query changes the user's context
        await eng.orchestrator.clear_cache(user_id)
        return {"success": True, "linked": linked}

    @app.delete("/v1/questions/cache", dependencies=[Depends(require_api_key)])
    async def clear_cache(user_id: str = Depends(current_user), eng: Engine = Depends(get_engine)):
        await eng.orchestrator.clear_cache(user_id)
        return {"success": True}

    @app.get("/v1/analytics/report", dependencies=[Depends(require_api_key)])
    async def report(days: int = 30, eng: Engine = Depends(get_engine)):
        if days < 1:
            raise HTTPException(status_code=400, detail="days must be >= 1")
        return {"days": days, "report": await eng.analytics.render_report(days)}

    return app
