"""User directory: accounts, roles, the active-user cap and the bootstrap admin."""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from . import config
from .auth import get_password_hash, verify_password
from .errors import AuthenticationError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from .models import Action, ActionPlan, ActionPlanAssignment, Role, User
from .time_window import to_storage, to_wire, year_bounds, year_of

logger = logging.getLogger(__name__)


def normalize_username(username: Optional[str]) -> str:
    return (username or "").strip().lower()


def validate_password(password: str) -> None:
    if len(password) < config.MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {config.MIN_PASSWORD_LENGTH} characters long")


def parse_role(value: Optional[str]) -> Role:
    if value is None:
        return Role.USER
    try:
        return Role(value.strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid role: {value!r} (expected 'user' or 'admin')")


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "role": user.role.value,
        "isActive": user.is_active,
        "createdAt": to_wire(user.created_at),
        "lastLogin": to_wire(user.last_login),
    }


def get_user(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User")
    return user


def find_by_username(session: Session, username: str, exclude_id: Optional[int] = None) -> Optional[User]:
    statement = select(User).where(User.username == normalize_username(username))
    if exclude_id is not None:
        statement = statement.where(User.id != exclude_id)
    return session.exec(statement).first()


def count_active_users(session: Session) -> int:
    return session.exec(select(func.count()).select_from(User).where(User.is_active == True)).one()  # noqa: E712


def list_users(session: Session) -> List[User]:
    return list(session.exec(select(User).order_by(User.created_at.desc(), User.id.desc())).all())


def _ensure_capacity(session: Session) -> None:
    # Check-then-act: concurrent creations can overshoot the cap transiently.
    if count_active_users(session) >= config.MAX_ACTIVE_USERS:
        raise ForbiddenError(f"Maximum user limit ({config.MAX_ACTIVE_USERS}) reached", code="user_limit_reached")


def _commit_user(session: Session, user: User) -> User:
    session.add(user)
    try:
        session.commit()
    except IntegrityError as exc:
        session.rollback()
        raise ConflictError("Username already exists") from exc
    session.refresh(user)
    return user


def create_user(session: Session, username: str, password: str, role: Optional[str] = None) -> User:
    normalized = normalize_username(username)
    if not normalized or not password:
        raise ValidationError("Username and password are required")
    validate_password(password)
    user_role = parse_role(role)

    _ensure_capacity(session)
    if find_by_username(session, normalized) is not None:
        raise ConflictError("Username already exists")

    user = User(username=normalized, hashed_password=get_password_hash(password), role=user_role)
    user = _commit_user(session, user)
    logger.info("User created: id=%s username=%s role=%s", user.id, user.username, user.role.value)
    return user


def update_user(
    session: Session,
    actor: User,
    user_id: int,
    *,
    username: Optional[str] = None,
    password: Optional[str] = None,
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
) -> User:
    user = get_user(session, user_id)

    if user.id == actor.id and is_active is False:
        raise ForbiddenError("Cannot deactivate your own account")

    # Validate the whole patch before touching the row.
    new_username = None
    if username:
        new_username = normalize_username(username)
        if not new_username:
            raise ValidationError("Username cannot be empty")
        if find_by_username(session, new_username, exclude_id=user.id) is not None:
            raise ConflictError("Username already exists")
    if password:
        validate_password(password)
    new_role = parse_role(role) if role else None
    if user.id == actor.id and user.is_admin and new_role == Role.USER:
        raise ForbiddenError("Cannot remove admin role from your own account")
    if is_active and not user.is_active:
        _ensure_capacity(session)

    if new_username:
        user.username = new_username
    if password:
        user.hashed_password = get_password_hash(password)
    if new_role:
        user.role = new_role
    if is_active is not None:
        user.is_active = is_active

    user = _commit_user(session, user)
    logger.info("User updated: id=%s by admin=%s", user.id, actor.id)
    return user


def delete_user(session: Session, actor: User, user_id: int, permanent: bool = False) -> str:
    """Deactivate a user, or with ``permanent`` remove it and everything it owns."""
    user = get_user(session, user_id)
    if user.id == actor.id:
        raise ForbiddenError("Cannot delete your own account")

    if not permanent:
        user.is_active = False
        session.add(user)
        session.commit()
        logger.info("User deactivated: id=%s by admin=%s", user.id, actor.id)
        return "User deactivated successfully"

    # The administrative cascade is not subject to the time-window policy.
    removed = session.exec(delete(Action).where(Action.user_id == user.id)).rowcount
    session.exec(delete(ActionPlanAssignment).where(ActionPlanAssignment.user_id == user.id))
    session.exec(update(ActionPlan).where(ActionPlan.created_by == user.id).values(created_by=None))
    session.delete(user)
    session.commit()
    logger.info("User permanently deleted: id=%s actions_removed=%s by admin=%s", user_id, removed, actor.id)
    return "User and all associated data permanently deleted"


def authenticate(session: Session, username: str, password: str, now: datetime) -> User:
    if not username or not password:
        raise ValidationError("Username and password are required")
    user = find_by_username(session, username)
    if user is None or not verify_password(password, user.hashed_password):
        raise AuthenticationError("Invalid credentials")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")
    user.last_login = to_storage(now)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def user_stats(session: Session, now: datetime) -> dict:
    def count(model, *criteria) -> int:
        return session.exec(select(func.count()).select_from(model).where(*criteria)).one()

    total_users = count(User)
    active_users = count_active_users(session)
    admin_users = count(User, User.role == Role.ADMIN, User.is_active == True)  # noqa: E712
    total_actions = count(Action)
    start, end = year_bounds(year_of(now))
    current_year_actions = count(Action, Action.created_at >= start, Action.created_at < end)

    return {
        "users": {
            "total": total_users,
            "active": active_users,
            "inactive": total_users - active_users,
            "admins": admin_users,
            "regular": active_users - admin_users,
        },
        "actions": {
            "total": total_actions,
            "currentYear": current_year_actions,
            "previousYears": total_actions - current_year_actions,
        },
        "limits": {
            "maxUsers": config.MAX_ACTIVE_USERS,
            "remainingSlots": max(0, config.MAX_ACTIVE_USERS - active_users),
        },
    }


def ensure_default_admin(session: Session, username: str, password: str) -> Optional[User]:
    """Create the bootstrap admin when no admin account exists. Idempotent."""
    if session.exec(select(User).where(User.role == Role.ADMIN)).first() is not None:
        return None

    normalized = normalize_username(username)
    if find_by_username(session, normalized) is not None:
        logger.error("Cannot create default admin: username %r is taken by a non-admin account", normalized)
        return None

    admin = User(username=normalized, hashed_password=get_password_hash(password), role=Role.ADMIN)
    admin = _commit_user(session, admin)
    logger.info("Default admin user created: %s", admin.username)
    return admin
