"""Owner-scoped action records gated by the calendar-year policy."""
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Optional, Union

from sqlalchemy import func
from sqlmodel import Session, select

from . import time_window
from .errors import ForbiddenError, NotFoundError, ValidationError
from .models import Action
from .pagination import Page, clamp_paging

logger = logging.getLogger(__name__)

MIN_YEAR = 1970
MAX_YEAR = 9998


def serialize_action(action: Action, now: datetime) -> dict:
    window = time_window.evaluate(action.created_at, now)
    return {
        "id": action.id,
        "data": action.data,
        "createdAt": time_window.to_wire(action.created_at),
        "updatedAt": time_window.to_wire(action.updated_at),
        "creationYear": window.creation_year,
        "canModify": window.can_modify,
    }


def parse_year(value: Union[str, int, None]) -> Optional[int]:
    """Parse the optional ``year`` filter; blank means no filter."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        year = int(value)
    except (TypeError, ValueError):
        raise ValidationError("Invalid year format")
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValidationError("Invalid year format")
    return year


def _require_data(data: Any) -> None:
    if data is None:
        raise ValidationError("Action data is required")


def create_action(session: Session, owner_id: int, data: Any, now: datetime) -> Action:
    _require_data(data)
    stamp = time_window.to_storage(now)
    action = Action(user_id=owner_id, data=data, created_at=stamp, updated_at=stamp)
    session.add(action)
    session.commit()
    session.refresh(action)
    logger.info("Action created: id=%s owner=%s", action.id, owner_id)
    return action


def get_owned_action(session: Session, owner_id: int, action_id: int) -> Action:
    # Other owners' records are reported as missing, never as forbidden.
    action = session.exec(select(Action).where(Action.id == action_id, Action.user_id == owner_id)).first()
    if action is None:
        raise NotFoundError("Action")
    return action


def list_actions(
    session: Session,
    owner_id: int,
    year: Optional[int] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
) -> Page[Action]:
    page_num, limit_num = clamp_paging(page, limit)
    criteria = [Action.user_id == owner_id]
    if year is not None:
        start, end = time_window.year_bounds(year)
        criteria += [Action.created_at >= start, Action.created_at < end]

    result: Page[Action] = Page(page=page_num, limit=limit_num)
    result.total = session.exec(select(func.count()).select_from(Action).where(*criteria)).one()
    statement = (
        select(Action)
        .where(*criteria)
        .order_by(Action.created_at.desc(), Action.id.desc())
        .offset(result.offset)
        .limit(limit_num)
    )
    result.items = list(session.exec(statement).all())
    return result


def update_action(session: Session, owner_id: int, action_id: int, data: Any, now: datetime) -> Action:
    _require_data(data)
    action = get_owned_action(session, owner_id, action_id)
    try:
        time_window.ensure_modifiable("update", action.created_at, now)
    except ForbiddenError:
        logger.warning("Update rejected by year lock: action=%s owner=%s", action.id, owner_id)
        raise

    # Payload is replaced wholesale; created_at is never touched.
    action.data = data
    action.updated_at = time_window.to_storage(now)
    session.add(action)
    session.commit()
    session.refresh(action)
    return action


def delete_action(session: Session, owner_id: int, action_id: int, now: datetime) -> None:
    action = get_owned_action(session, owner_id, action_id)
    try:
        time_window.ensure_modifiable("delete", action.created_at, now)
    except ForbiddenError:
        logger.warning("Delete rejected by year lock: action=%s owner=%s", action.id, owner_id)
        raise

    session.delete(action)
    session.commit()
    logger.info("Action deleted: id=%s owner=%s", action_id, owner_id)


def action_stats(session: Session, owner_id: int, now: datetime) -> dict:
    tz = time_window.policy_timezone()
    current_year = time_window.year_of(now, tz)
    created = session.exec(select(Action.created_at).where(Action.user_id == owner_id)).all()
    by_year = Counter(time_window.year_of(stamp, tz) for stamp in created)

    total = len(created)
    in_current_year = by_year.get(current_year, 0)
    return {
        "total": total,
        "currentYear": in_current_year,
        "previousYears": total - in_current_year,
        "byYear": [
            {"year": year, "count": count, "canModify": year == current_year}
            for year, count in sorted(by_year.items(), reverse=True)
        ],
        "currentYearInfo": {"year": current_year, "canCreate": True, "canModify": True},
    }
