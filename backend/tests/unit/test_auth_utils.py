from types import SimpleNamespace

import pytest

from app.core import auth_utils
from app.core.errors import Unauthenticated
from conftest import generate_test_token


def test_valid_hs256_token_resolves_locally(monkeypatch):
    monkeypatch.setattr(auth_utils, "supabase", None)
    user = auth_utils.resolve_token(generate_test_token("user-1", "u@example.com"))
    assert user == {"id": "user-1", "email": "u@example.com"}


def test_garbage_and_expired_tokens_are_rejected(expired_token, invalid_token):
    with pytest.raises(Unauthenticated):
        auth_utils.resolve_token(invalid_token)
    with pytest.raises(Unauthenticated):
        auth_utils.resolve_token(expired_token)


def test_falls_back_to_introspection_without_secret(monkeypatch):
    token = generate_test_token("user-2", "v@example.com")
    monkeypatch.setenv("SUPABASE_JWT_SECRET", "")
    fake_auth = SimpleNamespace(get_user=lambda _t: SimpleNamespace(user=SimpleNamespace(id="user-2", email="v@example.com")))
    monkeypatch.setattr(auth_utils, "supabase", SimpleNamespace(auth=fake_auth))

    assert auth_utils.resolve_token(token) == {"id": "user-2", "email": "v@example.com"}


def test_introspection_failure_is_unauthenticated(monkeypatch):
    token = generate_test_token("user-3")
    monkeypatch.setenv("SUPABASE_JWT_SECRET", "")

    def _boom(_token):
        raise RuntimeError("network down")

    monkeypatch.setattr(auth_utils, "supabase", SimpleNamespace(auth=SimpleNamespace(get_user=_boom)))
    with pytest.raises(Unauthenticated):
        auth_utils.resolve_token(token)
