import copy
import os
import sys
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import cmp_to_key
from types import SimpleNamespace
from typing import Any, AsyncGenerator, Optional
from uuid import uuid4

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from postgrest.exceptions import APIError

# Tokens are verified locally with this secret; must be set before the app reads it.
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-for-unit-tests")

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from main import app  # noqa: E402
from app.core import mail  # noqa: E402
from app.lib import api_client  # noqa: E402

# (manuscript_id, reviewer_id) is unique in manuscript_reviews; site_content is keyed by key.
UNIQUE_KEYS = {
    "manuscript_reviews": ("manuscript_id", "reviewer_id"),
    "site_content": ("key",),
    "profiles": ("id",),
}

_BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _api_error(code: str, message: str) -> APIError:
    return APIError({"code": code, "message": message, "details": None, "hint": None})


def _compare(a: dict, b: dict, orders: list) -> int:
    for column, desc, nullsfirst in orders:
        va, vb = a.get(column), b.get(column)
        if va == vb:
            continue
        nulls_first = desc if nullsfirst is None else nullsfirst
        if va is None:
            return -1 if nulls_first else 1
        if vb is None:
            return 1 if nulls_first else -1
        result = -1 if va < vb else 1
        return -result if desc else result
    return 0


class FakeQuery:
    """Chainable subset of the PostgREST query builder over in-memory rows."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.filters: list = []
        self.orders: list = []
        self.limit_n: Optional[int] = None

    def select(self, columns: str = "*", **_kwargs: Any):
        if self.op == "select":
            self.columns = columns
        return self

    def insert(self, payload: Any):
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload: dict):
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload: Any, on_conflict: Optional[str] = None, **_kwargs: Any):
        self.op, self.payload, self.on_conflict = "upsert", payload, on_conflict or "id"
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column: str, value: Any):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values: list):
        allowed = list(values)
        self.filters.append(lambda row: row.get(column) in allowed)
        return self

    def order(self, column: str, desc: bool = False, nullsfirst: Optional[bool] = None, **_kwargs: Any):
        self.orders.append((column, desc, nullsfirst))
        return self

    def limit(self, n: int):
        self.limit_n = n
        return self

    def _project(self, row: dict) -> dict:
        if self.columns.strip() == "*":
            return copy.deepcopy(row)
        return {c.strip(): copy.deepcopy(row.get(c.strip())) for c in self.columns.split(",") if c.strip()}

    def _matching(self) -> list:
        return [r for r in self.db.tables.setdefault(self.table, []) if all(f(r) for f in self.filters)]

    def execute(self):
        self.db.calls.append((self.table, self.op))
        failure = self.db.failures.get((self.table, self.op))
        if failure is not None:
            raise failure

        if self.op == "select":
            rows = self._matching()
            if self.orders:
                rows = sorted(rows, key=cmp_to_key(lambda a, b: _compare(a, b, self.orders)))
            if self.limit_n is not None:
                rows = rows[: self.limit_n]
            return SimpleNamespace(data=[self._project(r) for r in rows])

        if self.op == "insert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            return SimpleNamespace(data=[copy.deepcopy(self.db.insert_row(self.table, dict(i))) for i in items])

        if self.op == "update":
            rows = self._matching()
            for r in rows:
                r.update(copy.deepcopy(self.payload))
            return SimpleNamespace(data=[copy.deepcopy(r) for r in rows])

        if self.op == "upsert":
            items = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
            out = []
            for item in items:
                existing = next(
                    (r for r in self.db.tables.setdefault(self.table, []) if all(r.get(k) == item.get(k) for k in keys)),
                    None,
                )
                if existing is not None:
                    existing.update(copy.deepcopy(item))
                    out.append(copy.deepcopy(existing))
                else:
                    out.append(copy.deepcopy(self.db.insert_row(self.table, dict(item))))
            return SimpleNamespace(data=out)

        if self.op == "delete":
            doomed = self._matching()
            self.db.tables[self.table] = [r for r in self.db.tables[self.table] if r not in doomed]
            return SimpleNamespace(data=[copy.deepcopy(r) for r in doomed])

        raise AssertionError(f"unsupported op {self.op}")


class FakeBucket:
    def __init__(self, db: "FakeSupabase", name: str):
        self.db = db
        self.name = name

    def _fail(self, op: str) -> None:
        failure = self.db.failures.get(("storage", op))
        if failure is not None:
            raise failure

    def upload(self, path: str, content: bytes, file_options: Optional[dict] = None):
        self._fail("upload")
        self.db.files[(self.name, path)] = (bytes(content), dict(file_options or {}))
        return SimpleNamespace(path=path)

    def remove(self, paths: list):
        for p in paths:
            self.db.files.pop((self.name, p), None)
        return []

    def create_signed_url(self, path: str, expires_in: int):
        self._fail("sign")
        self.db.signed.append((self.name, path, expires_in))
        return {"signedURL": f"https://storage.test/{self.name}/{path}?token=t{len(self.db.signed)}"}

    def create_signed_upload_url(self, path: str):
        return {"signed_url": f"https://storage.test/upload/{self.name}/{path}?token=up", "token": "up", "path": path}

    def get_public_url(self, path: str) -> str:
        return f"https://storage.test/public/{self.name}/{path}"


class FakeAuthAdmin:
    def __init__(self):
        self.users: list = []
        self.invited: list = []

    def list_users(self):
        return list(self.users)

    def invite_user_by_email(self, email: str, options: Optional[dict] = None):
        user = SimpleNamespace(id=str(uuid4()), email=email)
        self.users.append(user)
        self.invited.append(email)
        return SimpleNamespace(user=user)


class FakeSupabase:
    """
    In-memory stand-in for the service-role Supabase client.

    `failures[(table, op)] = exc` makes the next matching `execute()` raise;
    storage failures use the ("storage", "upload" | "sign") keys.
    """

    def __init__(self):
        self.tables: dict = {}
        self.files: dict = {}
        self.signed: list = []
        self.calls: list = []
        self.failures: dict = {}
        self._seq = 0
        self.storage = SimpleNamespace(from_=lambda bucket: FakeBucket(self, bucket))
        self.auth = SimpleNamespace(admin=FakeAuthAdmin())

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rows(self, name: str) -> list:
        return self.tables.setdefault(name, [])

    def insert_row(self, table: str, row: dict) -> dict:
        unique = UNIQUE_KEYS.get(table)
        if unique and all(row.get(k) is not None for k in unique):
            for existing in self.rows(table):
                if all(existing.get(k) == row.get(k) for k in unique):
                    raise _api_error("23505", f'duplicate key value violates unique constraint "{table}_key"')
        self._seq += 1
        row.setdefault("id", str(uuid4()))
        row.setdefault("created_at", (_BASE_TIME + timedelta(seconds=self._seq)).isoformat())
        self.rows(table).append(row)
        return row

    def seed(self, table: str, **row: Any) -> dict:
        return copy.deepcopy(self.insert_row(table, row))


class FakeEmail:
    def __init__(self):
        self.sent: list = []

    def send_template_email(self, *, to, subject: str, template_name: str, context: dict) -> bool:
        self.sent.append({"to": sorted(to), "subject": subject, "template": template_name, "context": context})
        return True


@dataclass(frozen=True)
class TestUser:
    id: str
    email: str
    token: str

    @property
    def headers(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


def generate_test_token(user_id: str, email: str = "test@example.com", *, expires_in: int = 3600) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "exp": now + timedelta(seconds=expires_in),
        "iat": now,
        "role": "authenticated",
    }
    return jwt.encode(payload, os.environ["SUPABASE_JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def fake_db(monkeypatch) -> FakeSupabase:
    db = FakeSupabase()
    monkeypatch.setattr(api_client, "supabase_admin", db)
    return db


@pytest.fixture
def outbox(monkeypatch) -> FakeEmail:
    email = FakeEmail()
    monkeypatch.setattr(mail, "email_service", email)
    return email


@pytest.fixture
def make_user(fake_db):
    """Create a profile (unless role is None) and return a signed-in TestUser."""

    def _make(role: Optional[str] = "author", *, approved: bool = True, email: Optional[str] = None) -> TestUser:
        user_id = str(uuid4())
        email = email or f"{role or 'user'}-{user_id[:8]}@example.com"
        if role is not None:
            fake_db.seed("profiles", id=user_id, email=email, role=role, approved=approved)
        return TestUser(id=user_id, email=email, token=generate_test_token(user_id, email))

    return _make


@pytest_asyncio.fixture
async def client() -> AsyncGenerator:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def expired_token() -> str:
    return generate_test_token(str(uuid4()), expires_in=-3600)


@pytest.fixture
def invalid_token() -> str:
    return "invalid.jwt.token"
