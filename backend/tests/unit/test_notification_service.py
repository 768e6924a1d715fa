import logging

import pytest
from postgrest.exceptions import APIError

from app.core.errors import NotFound
from app.services.notification_service import NotificationService


def test_foreign_key_errors_stay_out_of_the_warning_log(fake_db, caplog):
    fake_db.failures[("notifications", "insert")] = APIError(
        {
            "code": "23503",
            "message": 'insert or update on table "notifications" violates foreign key constraint',
            "details": None,
            "hint": None,
        }
    )
    with caplog.at_level(logging.DEBUG, logger="journal.notifications"):
        res = NotificationService(supabase_admin=fake_db).create_notification(
            user_id="orphan", manuscript_id=None, title="t", body="b"
        )
    assert res is None
    assert not [r for r in caplog.records if r.levelno >= logging.WARNING]


def test_other_errors_are_logged_and_swallowed(fake_db, caplog):
    fake_db.failures[("notifications", "insert")] = APIError(
        {"code": "PGRST000", "message": "some api error", "details": None, "hint": None}
    )
    with caplog.at_level(logging.WARNING, logger="journal.notifications"):
        assert NotificationService(supabase_admin=fake_db).create_many(
            [{"user_id": "u", "title": "t", "body": "b"}]
        ) == []
    assert "notification insert failed" in caplog.text


def test_rows_without_user_are_dropped(fake_db):
    assert NotificationService(supabase_admin=fake_db).create_many([{"user_id": None, "title": "t", "body": "b"}]) == []
    assert ("notifications", "insert") not in fake_db.calls


def test_rows_are_trimmed_to_column_limits(fake_db):
    NotificationService(supabase_admin=fake_db).create_many(
        [{"user_id": "u-1", "manuscript_id": "m-1", "title": "t" * 300, "body": "b" * 2500, "extra": "ignored"}]
    )
    [row] = fake_db.rows("notifications")
    assert len(row["title"]) == 255
    assert len(row["body"]) == 2000
    assert row["manuscript_id"] == "m-1"
    assert "extra" not in row


def test_list_newest_first_with_limit(fake_db):
    service = NotificationService(supabase_admin=fake_db)
    for i in range(3):
        service.create_notification(user_id="u", manuscript_id=None, title=f"n{i}", body="b")
    service.create_notification(user_id="other", manuscript_id=None, title="x", body="b")

    rows = service.list_for_user(user_id="u", limit=2)
    assert [r["title"] for r in rows] == ["n2", "n1"]


def test_mark_read_only_own_notifications(fake_db):
    service = NotificationService(supabase_admin=fake_db)
    mine = service.create_notification(user_id="u", manuscript_id=None, title="t", body="b")

    with pytest.raises(NotFound):
        service.mark_read(user_id="someone-else", notification_id=mine["id"])
    assert service.mark_read(user_id="u", notification_id=mine["id"])["read_at"]
