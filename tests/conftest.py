"""Shared fixtures: an in-memory PostgREST table behind httpx.MockTransport."""

import json
import re
from datetime import date
from unittest.mock import patch

import httpx
import pytest
from blogstore.local.storage import MemoryStorage
from blogstore.local.store import LocalPostStore
from blogstore.remote.client import PostgrestClient
from blogstore.remote.store import RemotePostStore

REMOTE_URL = "https://example.supabase.co"
TODAY = date(2024, 5, 1)

ENV_VARS = (
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_ACCESS_TOKEN",
    "BLOGSTORE_DATA_DIR",
    "BLOGSTORE_BACKUP_DIR",
    "BLOGSTORE_OPERATOR",
    "BLOGSTORE_USE_REMOTE",
    "BLOGSTORE_FALLBACK_TO_LOCAL",
)

_ILIKE = re.compile(r'(\w+)\.ilike\."\*((?:[^"\\]|\\.)*)\*"')


def _literal(value):
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class FakePostgrest:
    """Just enough of PostgREST for the post store.

    ``fail`` answers every request with a 500.  ``fail_titles`` makes
    inserts of those titles fail.  ``steal_inserts`` simulates another
    writer claiming the requested slug right before that many inserts.
    """

    def __init__(self):
        self.rows = []
        self.next_id = 1
        self.fail = False
        self.fail_titles = set()
        self.steal_inserts = 0
        self.requests = []

    @property
    def transport(self):
        return httpx.MockTransport(self.handle)

    def seed(self, **fields):
        row = {
            "id": self.next_id,
            "excerpt": "",
            "image": None,
            "category": "",
            "author": "",
            "read_time": "5 min",
            "published": False,
            "created_at": "2024-01-01T00:00:00+00:00",
            "updated_at": "2024-01-01T00:00:00+00:00",
            **fields,
        }
        self.next_id += 1
        self.rows.append(row)
        return row

    # ── request handling ─────────────────────────────────────────

    def handle(self, request):
        self.requests.append(request)
        if self.fail:
            return httpx.Response(500, json={"message": "boom", "code": "XX000"})
        params = request.url.params.multi_items()
        if request.method == "GET":
            return self._select(params)
        if request.method == "POST":
            return self._insert(json.loads(request.content))
        if request.method == "PATCH":
            return self._update(params, json.loads(request.content))
        if request.method == "DELETE":
            return self._delete(params)
        return httpx.Response(405)

    def _matches(self, row, params):
        for key, value in params:
            if key in ("select", "order", "limit"):
                continue
            if key == "or":
                clauses = [(c, t.replace('\\"', '"').replace("\\\\", "\\")) for c, t in _ILIKE.findall(value)]
                if not any(t.lower() in str(row.get(c) or "").lower() for c, t in clauses):
                    return False
                continue
            op, _, expected = value.partition(".")
            actual = _literal(row.get(key))
            if op == "eq" and actual != expected:
                return False
            if op == "neq" and actual == expected:
                return False
        return True

    def _conflict(self, slug, exclude_id=None):
        return any(r["slug"] == slug and r["id"] != exclude_id for r in self.rows)

    def _unique_violation(self):
        return httpx.Response(
            409,
            json={"code": "23505", "message": "duplicate key value violates unique constraint"},
        )

    def _select(self, params):
        rows = [r for r in self.rows if self._matches(r, params)]
        order = dict(params).get("order")
        if order:
            for part in reversed(order.split(",")):
                column, _, direction = part.partition(".")
                rows.sort(key=lambda r: r[column], reverse=direction == "desc")
        limit = dict(params).get("limit")
        if limit is not None:
            rows = rows[: int(limit)]
        columns = dict(params).get("select", "*")
        if columns != "*":
            wanted = columns.split(",")
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        return httpx.Response(200, json=rows)

    def _insert(self, payload):
        created = []
        for values in payload:
            if values["title"] in self.fail_titles:
                return httpx.Response(500, json={"message": "insert rejected"})
            if self.steal_inserts:
                self.steal_inserts -= 1
                self.seed(title="Concurrent", content="x", date="2024-01-01", slug=values["slug"])
                return self._unique_violation()
            if self._conflict(values["slug"]):
                return self._unique_violation()
            created.append(self.seed(**values))
        return httpx.Response(201, json=created)

    def _update(self, params, values):
        rows = [r for r in self.rows if self._matches(r, params)]
        for row in rows:
            if "slug" in values and self._conflict(values["slug"], row["id"]):
                return self._unique_violation()
        for row in rows:
            row.update(values)
        return httpx.Response(200, json=rows)

    def _delete(self, params):
        removed = [r for r in self.rows if self._matches(r, params)]
        self.rows = [r for r in self.rows if r not in removed]
        return httpx.Response(200, json=removed)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove env vars that _apply_env_vars reads and hide any global config."""
    for key in ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    with patch("blogstore.config.GLOBAL_CONFIG", tmp_path / "absent.toml"):
        yield


@pytest.fixture
def fake_table():
    return FakePostgrest()


@pytest.fixture
def remote_store(fake_table):
    client = PostgrestClient(REMOTE_URL, "anon-key", transport=fake_table.transport)
    return RemotePostStore(client, today=lambda: TODAY)


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def local_store(memory_storage):
    return LocalPostStore(memory_storage, today=lambda: TODAY)
