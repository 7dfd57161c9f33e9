from __future__ import annotations

from fastapi import Header, HTTPException

from question_engine.settings import settings


def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
    if not settings.api_key:
        return
    if (x_api_key or "") != settings.api_key:
        raise HTTPException(status_code=401, detail="invalid API key")


def current_user(x_user_id: str | None = Header(default=None)) -> str:
    """Identity is asserted by the upstream gateway; we only require that it is present."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id
