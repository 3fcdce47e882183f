from collections import defaultdict
from datetime import datetime, timedelta, timezone
from itertools import count

import jwt
import pytest
from fastapi.testclient import TestClient

import database
import notifier
from database import UpstreamError, _to_dict
from main import app

SECRET = "test-signing-key-not-known-to-the-service"
_CLOCK_START = datetime(2025, 1, 1, tzinfo=timezone.utc)


def make_token(sub="user-1", email="fencer@example.com", role=None):
    claims = {"sub": sub, "email": email}
    if role:
        claims["app_metadata"] = {"role": role}
    return jwt.encode(claims, SECRET, algorithm="HS256")


def auth(token):
    return {"Authorization": f"Bearer {token}"}


class FakeDatabase:
    """In-memory stand-in for the hosted backend's document API."""

    def __init__(self):
        self.tables = defaultdict(list)
        self.tokens = []
        self.failures = {}
        self.uploads = []
        self.queries = []
        self._ids = defaultdict(lambda: count(1))
        self._clock = count(1)

    def bind(self, token=None):
        self.tokens.append(token)
        return self

    def fail(self, method, table, status_code=500):
        self.failures[(method, table)] = UpstreamError(status_code, f"{method} {table} failed")

    def _check(self, method, table):
        if (method, table) in self.failures:
            raise self.failures[(method, table)]

    def _matches(self, row, filters):
        return all(row.get(key) == value for key, value in (filters or {}).items())

    def create_document(self, table, data):
        self._check("create_document", table)
        row = _to_dict(data)
        if table == "user_favourites" and self.get_documents(table, row):
            raise UpstreamError(409, "duplicate key value violates unique constraint")
        row.setdefault("id", next(self._ids[table]))
        row.setdefault("created_at", (_CLOCK_START + timedelta(seconds=next(self._clock))).isoformat())
        self.tables[table].append(row)
        return dict(row)

    def get_documents(self, table, filters=None, order=None, columns="*", within=None):
        self._check("get_documents", table)
        self.queries.append((table, filters, within))
        rows = [dict(r) for r in self.tables[table] if self._matches(r, filters)]
        for column, values in (within or {}).items():
            rows = [r for r in rows if r.get(column) in values]
        if order:
            column, _, direction = order.partition(".")
            rows.sort(key=lambda r: r.get(column) or "", reverse=direction == "desc")
        if columns != "*":
            wanted = [c.strip() for c in columns.split(",")]
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        return rows

    def get_document(self, table, filters):
        docs = self.get_documents(table, filters)
        return docs[0] if docs else None

    def update_documents(self, table, filters, values):
        self._check("update_documents", table)
        updated = []
        for row in self.tables[table]:
            if self._matches(row, filters):
                row.update(_to_dict(values))
                updated.append(dict(row))
        return updated

    def delete_documents(self, table, filters):
        self._check("delete_documents", table)
        removed = [r for r in self.tables[table] if self._matches(r, filters)]
        self.tables[table] = [r for r in self.tables[table] if not self._matches(r, filters)]
        return removed

    def sign_in(self, email, password):
        if password != "correct horse":
            raise UpstreamError(400, "Invalid login credentials")
        return {"token": make_token(email=email), "identity": email}

    def sign_up(self, email, password):
        if email.startswith("confirm"):
            return {"token": None, "identity": email}
        return {"token": make_token(email=email), "identity": email}

    def upload_object(self, bucket, name, content, content_type):
        self.uploads.append((bucket, name, content, content_type))
        return f"https://backend.example/storage/v1/object/public/{bucket}/{name}"


@pytest.fixture(autouse=True)
def quiet_environment(monkeypatch):
    monkeypatch.delenv("NOTIFY_URL", raising=False)
    monkeypatch.delenv("NOTIFY_TO", raising=False)
    monkeypatch.setenv("API_BASE_URL", "https://backend.example")
    monkeypatch.setenv("API_KEY", "service-key")


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeDatabase()
    monkeypatch.setattr(database, "open_db", db.bind)
    return db


@pytest.fixture
def client(fake_db):
    return TestClient(app)


@pytest.fixture
def outbox(monkeypatch):
    sent = []

    def _notify(to, subject, body):
        sent.append({"to": to, "subject": subject, "body": body})
        return True

    monkeypatch.setattr(notifier, "notify", _notify)
    return sent


@pytest.fixture
def user_token():
    return make_token(sub="user-1", email="fencer@example.com")


@pytest.fixture
def other_token():
    return make_token(sub="user-2", email="other@example.com")


@pytest.fixture
def admin_token():
    return make_token(sub="admin-1", email="admin@example.com", role="admin")


@pytest.fixture
def published(fake_db):
    """Two published tournaments, the first owned by user-1."""
    vienna = fake_db.create_document("tournaments", {
        "name": "European HEMA Championships",
        "location": "Vienna, Austria",
        "date": "2025-06-15",
        "disciplines": [{"name": "Longsword", "type": "Open"}, {"name": "Rapier", "type": "Women"}],
        "coordinates": [48.2082, 16.3738],
        "contact_email": "info@ehc.org",
    })
    gothenburg = fake_db.create_document("tournaments", {
        "name": "Swordfish",
        "location": "Gothenburg, Sweden",
        "date": "2025-11-01",
        "date_to": "2025-11-03",
        "disciplines": [{"name": "Sabre", "type": "Men"}],
        "coordinates": [57.7089, 11.9746],
    })
    fake_db.create_document("tournament_owners", {"tournament_id": vienna["id"], "user_id": "user-1"})
    return vienna, gothenburg
