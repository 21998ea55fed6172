from datetime import datetime, timezone

import pytest
from sqlmodel import select

from actiontrack import action_plans, actions, config, users
from actiontrack.errors import AuthenticationError, ConflictError, ForbiddenError, NotFoundError, ValidationError
from actiontrack.models import Action, ActionPlan, Role, User
from actiontrack.time_window import as_utc

NOW = datetime(2025, 6, 15, 12, tzinfo=timezone.utc)


def fill_to_cap(session, already_active):
    return [
        users.create_user(session, f"member{i:02d}", "secret123")
        for i in range(config.MAX_ACTIVE_USERS - already_active)
    ]


def test_create_normalizes_username_and_hashes_password(session):
    user = users.create_user(session, "  Alice ", "pw123456")
    assert user.username == "alice"
    assert user.role == Role.USER
    assert user.is_active
    assert user.hashed_password != "pw123456"
    assert users.find_by_username(session, "ALICE").id == user.id


def test_usernames_differing_by_case_or_padding_conflict(session, alice):
    with pytest.raises(ConflictError):
        users.create_user(session, " ALICE  ", "another1")


def test_password_minimum_length(session):
    with pytest.raises(ValidationError):
        users.create_user(session, "carol", "12345")


def test_unknown_role_is_rejected(session):
    with pytest.raises(ValidationError):
        users.create_user(session, "carol", "pw123456", "superuser")


def test_cap_blocks_the_31st_active_user(session, admin):
    members = fill_to_cap(session, already_active=1)
    assert users.count_active_users(session) == 30

    with pytest.raises(ForbiddenError) as exc_info:
        users.create_user(session, "extra", "pw123456")
    assert "30" in exc_info.value.message

    users.delete_user(session, admin, members[0].id)
    assert users.create_user(session, "extra", "pw123456").is_active


def test_inactive_usernames_stay_reserved(session, admin, alice):
    users.delete_user(session, admin, alice.id)
    with pytest.raises(ConflictError):
        users.create_user(session, "alice", "pw123456")


def test_reactivation_respects_the_cap(session, admin, alice):
    users.delete_user(session, admin, alice.id)
    fill_to_cap(session, already_active=1)
    with pytest.raises(ForbiddenError):
        users.update_user(session, admin, alice.id, is_active=True)


def test_update_fields(session, admin, alice, bob):
    updated = users.update_user(session, admin, alice.id, username=" Alicia ", password="newpass1", role="admin")
    assert updated.username == "alicia"
    assert updated.role == Role.ADMIN
    assert users.authenticate(session, "alicia", "newpass1", NOW).id == alice.id

    with pytest.raises(ConflictError):
        users.update_user(session, admin, bob.id, username="ALICIA")
    with pytest.raises(ValidationError):
        users.update_user(session, admin, bob.id, password="short")


def test_admin_cannot_deactivate_or_delete_self(session, admin):
    with pytest.raises(ForbiddenError):
        users.update_user(session, admin, admin.id, is_active=False)
    with pytest.raises(ForbiddenError):
        users.delete_user(session, admin, admin.id)
    with pytest.raises(ForbiddenError):
        users.delete_user(session, admin, admin.id, permanent=True)


def test_admin_cannot_demote_self(session, admin, alice):
    with pytest.raises(ForbiddenError):
        users.update_user(session, admin, admin.id, role="USER", username="boss")
    session.expire_all()
    stored = session.get(User, admin.id)
    assert stored.role == Role.ADMIN
    assert stored.username == "root"
    assert users.user_stats(session, NOW)["users"]["admins"] == 1

    # Demoting another admin is still allowed.
    other = users.create_user(session, "ops", "opspass1", "admin")
    assert users.update_user(session, admin, other.id, role="user").role == Role.USER
    assert users.update_user(session, admin, admin.id, role="admin").role == Role.ADMIN


def test_unknown_user(session, admin):
    with pytest.raises(NotFoundError):
        users.update_user(session, admin, 9999, role="admin")
    with pytest.raises(NotFoundError):
        users.delete_user(session, admin, 9999)


def test_soft_delete_keeps_user_and_records(session, admin, alice):
    for n in range(3):
        actions.create_action(session, alice.id, {"n": n}, NOW)
    users.delete_user(session, admin, alice.id)

    session.expire_all()
    assert session.get(User, alice.id).is_active is False
    assert len(session.exec(select(Action).where(Action.user_id == alice.id)).all()) == 3


def test_permanent_delete_cascades_to_records(session, admin, alice, bob):
    for n in range(3):
        actions.create_action(session, alice.id, {"n": n}, NOW)
    actions.create_action(session, bob.id, {"n": "keep"}, NOW)
    plan = action_plans.create_plan(session, admin, "Plan", "desc", [alice.id, bob.id], NOW)

    alice_id = alice.id
    message = users.delete_user(session, admin, alice_id, permanent=True)
    assert "permanently" in message

    session.expire_all()
    assert session.get(User, alice_id) is None
    assert session.exec(select(Action).where(Action.user_id == alice_id)).all() == []
    assert len(session.exec(select(Action)).all()) == 1
    assert [u.id for u in action_plans.assigned_users(session, plan.id)] == [bob.id]


def test_permanent_delete_of_plan_author_keeps_plan(session, admin, alice):
    other_admin = users.create_user(session, "ops", "opspass1", "admin")
    plan = action_plans.create_plan(session, other_admin, "Plan", "desc", [alice.id], NOW)
    users.delete_user(session, admin, other_admin.id, permanent=True)

    session.expire_all()
    stored = session.get(ActionPlan, plan.id)
    assert stored is not None
    assert stored.created_by is None
    assert action_plans.serialize_plan(session, stored)["createdBy"] is None


def test_authenticate(session, admin, alice):
    user = users.authenticate(session, " Alice", "pw123456", NOW)
    assert as_utc(user.last_login) == NOW
    with pytest.raises(AuthenticationError):
        users.authenticate(session, "alice", "wrong-password", NOW)
    with pytest.raises(AuthenticationError):
        users.authenticate(session, "nobody", "pw123456", NOW)

    users.delete_user(session, admin, alice.id)
    with pytest.raises(AuthenticationError):
        users.authenticate(session, "alice", "pw123456", NOW)


def test_user_stats(session, admin, alice, bob):
    users.delete_user(session, admin, bob.id)
    actions.create_action(session, alice.id, {"n": 1}, datetime(2024, 3, 1, tzinfo=timezone.utc))
    actions.create_action(session, alice.id, {"n": 2}, NOW)

    stats = users.user_stats(session, NOW)
    assert stats["users"] == {"total": 3, "active": 2, "inactive": 1, "admins": 1, "regular": 1}
    assert stats["actions"] == {"total": 2, "currentYear": 1, "previousYears": 1}
    assert stats["limits"] == {"maxUsers": 30, "remainingSlots": 28}


def test_default_admin_is_created_once(session):
    created = users.ensure_default_admin(session, "Admin", "admin123")
    assert created.username == "admin"
    assert created.role == Role.ADMIN
    assert users.ensure_default_admin(session, "admin", "admin123") is None
    assert len(session.exec(select(User)).all()) == 1


def test_default_admin_skipped_when_an_admin_exists(session, admin):
    assert users.ensure_default_admin(session, "admin", "admin123") is None
    assert users.find_by_username(session, "admin") is None
