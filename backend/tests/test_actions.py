from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import Session

from actiontrack import actions, time_window
from actiontrack.errors import ForbiddenError, NotFoundError, ValidationError
from actiontrack.models import Action


def at(year, month=6, day=15, hour=12):
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def test_create_sets_equal_timestamps_and_current_year(session, alice):
    now = at(2025)
    action = actions.create_action(session, alice.id, {"title": "t1"}, now)
    body = actions.serialize_action(action, now)
    assert body["createdAt"] == body["updatedAt"] == "2025-06-15T12:00:00Z"
    assert body["creationYear"] == 2025
    assert body["canModify"] is True
    assert body["data"] == {"title": "t1"}


def test_timestamps_are_written_as_utc_instants(engine, alice):
    tokyo = timezone(timedelta(hours=9))
    created = datetime(2026, 1, 1, 8, 30, tzinfo=tokyo)
    with Session(engine) as writer:
        action = actions.create_action(writer, alice.id, {"title": "t1"}, created)
        action_id = action.id

    with Session(engine) as reader:
        stored = reader.get(Action, action_id)
        assert time_window.as_utc(stored.created_at) == datetime(2025, 12, 31, 23, 30, tzinfo=timezone.utc)
        assert time_window.year_of(stored.created_at) == 2025
        assert [a.id for a in actions.list_actions(reader, alice.id, year=2025).items] == [action_id]


def test_storage_form_is_timezone_aware():
    stamp = time_window.to_storage(datetime(2025, 3, 1, 9, tzinfo=timezone(timedelta(hours=-5))))
    assert stamp.utcoffset() == timedelta(0)
    assert stamp == datetime(2025, 3, 1, 14, tzinfo=timezone.utc)


def test_create_requires_payload(session, alice):
    with pytest.raises(ValidationError):
        actions.create_action(session, alice.id, None, at(2025))


def test_update_replaces_payload_and_keeps_created_at(session, alice):
    action = actions.create_action(session, alice.id, {"title": "t1", "notes": "x"}, at(2025, 2))
    created_at = action.created_at

    updated = actions.update_action(session, alice.id, action.id, {"title": "t2"}, at(2025, 9))
    assert updated.data == {"title": "t2"}
    assert updated.created_at == created_at
    assert time_window.as_utc(updated.updated_at) == at(2025, 9)


def test_rejection_after_rollover_leaves_record_untouched(session, alice):
    action = actions.create_action(session, alice.id, {"title": "t1"}, at(2025))
    next_year = at(2026, 1, 1, 0)

    for _ in range(2):
        with pytest.raises(ForbiddenError) as exc_info:
            actions.update_action(session, alice.id, action.id, {"title": "changed"}, next_year)
        assert "2025" in exc_info.value.message
    with pytest.raises(ForbiddenError):
        actions.delete_action(session, alice.id, action.id, next_year)

    session.expire_all()
    stored = session.get(Action, action.id)
    assert stored.data == {"title": "t1"}
    assert stored.updated_at == stored.created_at
    assert actions.serialize_action(stored, next_year)["canModify"] is False


def test_delete_current_year_record(session, alice):
    action = actions.create_action(session, alice.id, {"title": "gone"}, at(2025))
    actions.delete_action(session, alice.id, action.id, at(2025, 11))
    assert session.get(Action, action.id) is None


def test_records_of_other_owners_are_not_found(session, alice, bob):
    action = actions.create_action(session, alice.id, {"title": "mine"}, at(2025))
    with pytest.raises(NotFoundError):
        actions.get_owned_action(session, bob.id, action.id)
    with pytest.raises(NotFoundError):
        actions.update_action(session, bob.id, action.id, {"title": "theirs"}, at(2025))
    with pytest.raises(NotFoundError):
        actions.delete_action(session, bob.id, action.id, at(2025))


def test_list_filters_by_year_and_paginates_newest_first(session, alice, bob):
    for month in range(1, 6):
        actions.create_action(session, alice.id, {"n": month}, at(2024, month))
    for month in range(1, 4):
        actions.create_action(session, alice.id, {"n": 100 + month}, at(2025, month))
    actions.create_action(session, bob.id, {"n": 999}, at(2025))

    page = actions.list_actions(session, alice.id, year=2024, page=2, limit=2)
    assert page.total == 5
    assert page.total_pages == 3
    assert [a.data["n"] for a in page.items] == [3, 2]
    assert page.describe("totalActions") == {
        "currentPage": 2,
        "totalPages": 3,
        "totalActions": 5,
        "hasNextPage": True,
        "hasPrevPage": True,
    }

    everything = actions.list_actions(session, alice.id)
    assert everything.total == 8
    assert everything.limit == 10
    assert everything.items[0].data["n"] == 103


def test_list_clamps_paging(session, alice):
    page = actions.list_actions(session, alice.id, page=0, limit=1000)
    assert page.page == 1
    assert page.limit == 100
    page = actions.list_actions(session, alice.id, page=-3, limit=0)
    assert (page.page, page.limit) == (1, 1)


@pytest.mark.parametrize("raw", ["abc", "20x5", "12"])
def test_parse_year_rejects_bad_values(raw):
    with pytest.raises(ValidationError):
        actions.parse_year(raw)


def test_parse_year_accepts_numbers_and_blank():
    assert actions.parse_year("2024") == 2024
    assert actions.parse_year("") is None
    assert actions.parse_year(None) is None


def test_stats_group_counts_by_year(session, alice):
    actions.create_action(session, alice.id, {"n": 1}, at(2023))
    actions.create_action(session, alice.id, {"n": 2}, at(2024))
    actions.create_action(session, alice.id, {"n": 3}, at(2024, 8))
    actions.create_action(session, alice.id, {"n": 4}, at(2025))

    stats = actions.action_stats(session, alice.id, at(2025, 10))
    assert stats["total"] == 4
    assert stats["currentYear"] == 1
    assert stats["previousYears"] == 3
    assert stats["byYear"] == [
        {"year": 2025, "count": 1, "canModify": True},
        {"year": 2024, "count": 2, "canModify": False},
        {"year": 2023, "count": 1, "canModify": False},
    ]
    assert stats["currentYearInfo"]["year"] == 2025
