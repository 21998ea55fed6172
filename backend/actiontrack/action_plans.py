"""Admin-authored action plans broadcast to selected users."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, List, Optional

from sqlalchemy import delete, func
from sqlmodel import Session, select

from . import time_window
from .errors import ForbiddenError, NotFoundError, ValidationError
from .models import ActionPlan, ActionPlanAssignment, User
from .pagination import Page, clamp_paging

logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _dedupe(user_ids: Iterable[int]) -> List[int]:
    seen = set()
    ordered = []
    for user_id in user_ids:
        if user_id not in seen:
            seen.add(user_id)
            ordered.append(user_id)
    return ordered


def _validate_targets(session: Session, user_ids: List[int]) -> None:
    """All-or-nothing: every id must resolve to an active user."""
    if not user_ids:
        return
    found = session.exec(
        select(func.count()).select_from(User).where(User.id.in_(user_ids), User.is_active == True)  # noqa: E712
    ).one()
    if found != len(user_ids):
        raise ValidationError("One or more user IDs are invalid or inactive")


def _replace_assignments(session: Session, plan_id: int, user_ids: List[int]) -> None:
    session.exec(delete(ActionPlanAssignment).where(ActionPlanAssignment.plan_id == plan_id))
    for position, user_id in enumerate(user_ids):
        session.add(ActionPlanAssignment(plan_id=plan_id, user_id=user_id, position=position))


def assigned_users(session: Session, plan_id: int) -> List[User]:
    statement = (
        select(User)
        .join(ActionPlanAssignment, ActionPlanAssignment.user_id == User.id)
        .where(ActionPlanAssignment.plan_id == plan_id)
        .order_by(ActionPlanAssignment.position)
    )
    return list(session.exec(statement).all())


def serialize_plan(session: Session, plan: ActionPlan) -> dict:
    author = session.get(User, plan.created_by) if plan.created_by is not None else None
    return {
        "id": plan.id,
        "title": plan.title,
        "description": plan.description,
        "userIds": [
            {"id": user.id, "username": user.username, "role": user.role.value}
            for user in assigned_users(session, plan.id)
        ],
        "createdBy": {"id": author.id, "username": author.username} if author else None,
        "createdAt": time_window.to_wire(plan.created_at),
        "updatedAt": time_window.to_wire(plan.updated_at),
        "creationYear": time_window.year_of(plan.created_at),
    }


def create_plan(
    session: Session,
    author: User,
    title: Optional[str],
    description: Any,
    user_ids: Optional[List[int]],
    now: datetime,
) -> ActionPlan:
    if not (author.is_admin and author.is_active):
        raise ForbiddenError("Only administrators can create action plans")
    if _is_blank(title) or _is_blank(description):
        raise ValidationError("Title and description are required")
    targets = _dedupe(user_ids or [])
    _validate_targets(session, targets)

    stamp = time_window.to_storage(now)
    plan = ActionPlan(title=title.strip(), description=description, created_by=author.id, created_at=stamp, updated_at=stamp)
    session.add(plan)
    session.flush()
    _replace_assignments(session, plan.id, targets)
    session.commit()
    session.refresh(plan)
    logger.info("Action plan created: id=%s by admin=%s targets=%s", plan.id, author.id, len(targets))
    return plan


def get_plan(session: Session, plan_id: int) -> ActionPlan:
    plan = session.get(ActionPlan, plan_id)
    if plan is None:
        raise NotFoundError("Action plan")
    return plan


def list_plans(session: Session, page: Optional[int] = None, limit: Optional[int] = None) -> Page[ActionPlan]:
    page_num, limit_num = clamp_paging(page, limit)
    result: Page[ActionPlan] = Page(page=page_num, limit=limit_num)
    result.total = session.exec(select(func.count()).select_from(ActionPlan)).one()
    statement = (
        select(ActionPlan)
        .order_by(ActionPlan.created_at.desc(), ActionPlan.id.desc())
        .offset(result.offset)
        .limit(limit_num)
    )
    result.items = list(session.exec(statement).all())
    return result


def update_plan(
    session: Session,
    plan_id: int,
    now: datetime,
    *,
    title: Optional[str] = None,
    description: Any = None,
    user_ids: Optional[List[int]] = None,
) -> ActionPlan:
    plan = get_plan(session, plan_id)

    targets = None
    if user_ids is not None:
        targets = _dedupe(user_ids)
        _validate_targets(session, targets)

    if not _is_blank(title):
        plan.title = title.strip()
    if not _is_blank(description):
        plan.description = description
    if targets is not None:
        _replace_assignments(session, plan.id, targets)
    plan.updated_at = time_window.to_storage(now)

    session.add(plan)
    session.commit()
    session.refresh(plan)
    logger.info("Action plan updated: id=%s", plan.id)
    return plan


def delete_plan(session: Session, plan_id: int) -> None:
    plan = get_plan(session, plan_id)
    session.exec(delete(ActionPlanAssignment).where(ActionPlanAssignment.plan_id == plan.id))
    session.delete(plan)
    session.commit()
    logger.info("Action plan deleted: id=%s", plan_id)


def list_plans_for_user(session: Session, actor: User, user_id: int) -> List[ActionPlan]:
    """Plans targeting ``user_id``; users may only look at their own."""
    if actor.id != user_id and not actor.is_admin:
        raise ForbiddenError("You can only view your own action plans")
    statement = (
        select(ActionPlan)
        .join(ActionPlanAssignment, ActionPlanAssignment.plan_id == ActionPlan.id)
        .where(ActionPlanAssignment.user_id == user_id)
        .order_by(ActionPlan.created_at.desc(), ActionPlan.id.desc())
    )
    return list(session.exec(statement).all())
