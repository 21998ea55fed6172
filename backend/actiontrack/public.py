"""Unauthenticated, redacted view of recent actions."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from . import config, time_window
from .models import Action, User

UNTITLED = "Untitled Action"


def _field(data: Any, name: str) -> Any:
    if isinstance(data, dict):
        return data.get(name) or None
    return None


def redact(action: Action) -> dict:
    """Expose only title, category and priority of the payload."""
    return {
        "id": action.id,
        "data": {
            "title": _field(action.data, "title") or UNTITLED,
            "category": _field(action.data, "category"),
            "priority": _field(action.data, "priority"),
        },
        "createdAt": time_window.to_wire(action.created_at),
    }


def feed_limit(limit: Optional[int]) -> int:
    if not limit or limit < 1:
        return config.DEFAULT_FEED_LIMIT
    return min(limit, config.MAX_FEED_LIMIT)


def system_stats(session: Session, now: datetime) -> dict:
    start, end = time_window.year_bounds(time_window.year_of(now))
    total = session.exec(select(func.count()).select_from(Action)).one()
    current = session.exec(
        select(func.count()).select_from(Action).where(Action.created_at >= start, Action.created_at < end)
    ).one()
    active_users = session.exec(select(func.count()).select_from(User).where(User.is_active == True)).one()  # noqa: E712
    return {"totalActions": total, "currentYearActions": current, "activeUsers": active_users}


def overview(session: Session, now: datetime, limit: Optional[int] = None) -> dict:
    statement = select(Action).order_by(Action.created_at.desc(), Action.id.desc()).limit(feed_limit(limit))
    actions = session.exec(statement).all()
    return {"actions": [redact(action) for action in actions], "stats": system_stats(session, now)}
