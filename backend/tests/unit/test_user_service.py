from types import SimpleNamespace

import pytest

from app.core.errors import Forbidden, NotFound, ValidationError
from app.services.user_service import UserService, describe_profile


@pytest.fixture
def users(fake_db):
    fake_db.seed("profiles", id="admin-1", email="admin@example.com", role="admin", approved=True)
    fake_db.seed("profiles", id="u-1", email="u@example.com", role="author", approved=False)
    return UserService(supabase_admin=fake_db)


def test_admin_approves_reviewer(users, fake_db):
    row = users.update_profile(user_id="u-1", role="Reviewer", approved=True, actor_id="admin-1")
    assert (row["role"], row["approved"]) == ("reviewer", True)


def test_invalid_role_and_empty_patch(users):
    with pytest.raises(ValidationError):
        users.update_profile(user_id="u-1", role="superuser", approved=None, actor_id="admin-1")
    with pytest.raises(ValidationError):
        users.update_profile(user_id="u-1", role=None, approved=None, actor_id="admin-1")


def test_admin_cannot_revoke_own_admin(users, fake_db):
    with pytest.raises(Forbidden):
        users.update_profile(user_id="admin-1", role="editor", approved=None, actor_id="admin-1")
    with pytest.raises(Forbidden):
        users.update_profile(user_id="admin-1", role=None, approved=False, actor_id="admin-1")
    assert fake_db.rows("profiles")[0]["role"] == "admin"


def test_unknown_user(users):
    with pytest.raises(NotFound):
        users.update_profile(user_id="ghost", role="author", approved=None, actor_id="admin-1")


def test_seed_admin_promotes_existing_auth_user(fake_db):
    fake_db.auth.admin.users.append(SimpleNamespace(id="auth-9", email="Boss@Example.com"))
    fake_db.seed("profiles", id="auth-9", email="boss@example.com", role="author", approved=False)

    profile = UserService(supabase_admin=fake_db).seed_admin("boss@example.com")

    assert profile["id"] == "auth-9"
    assert (profile["role"], profile["approved"]) == ("admin", True)
    assert len(fake_db.rows("profiles")) == 1
    assert fake_db.auth.admin.invited == []


def test_seed_admin_invites_unknown_email_and_is_idempotent(fake_db):
    service = UserService(supabase_admin=fake_db)
    first = service.seed_admin("new-admin@example.com")
    second = service.seed_admin("new-admin@example.com")

    assert first["id"] == second["id"]
    assert fake_db.auth.admin.invited == ["new-admin@example.com"]
    assert len(fake_db.rows("profiles")) == 1


def test_seed_admin_requires_email(fake_db):
    with pytest.raises(ValidationError):
        UserService(supabase_admin=fake_db).seed_admin("not-an-email")


def test_describe_profile_flags():
    assert describe_profile({"id": "x", "role": "editor", "approved": True})["isEditor"] is True
    flags = describe_profile({"id": "x", "role": "reviewer", "approved": False})
    assert (flags["isEditor"], flags["isReviewer"]) == (False, False)
