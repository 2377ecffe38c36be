"""Shared fakes: an in-memory Supabase query builder and a virtual timer clock."""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.action = "select"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.limit_n = None

    def select(self, *columns, **kwargs):
        self.action = "select"
        return self

    def insert(self, payload):
        self.action, self.payload = "insert", payload
        return self

    def upsert(self, payload, on_conflict=None):
        self.action, self.payload = "upsert", payload
        self.on_conflict = on_conflict
        return self

    def update(self, payload):
        self.action, self.payload = "update", payload
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def gt(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) > value)
        return self

    def match(self, values):
        for column, value in values.items():
            self.eq(column, value)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def execute(self):
        self.db.calls.append((self.table, self.action))
        if self.table in self.db.failing:
            raise RuntimeError(f"{self.table} unavailable")
        rows = self.db.tables.setdefault(self.table, [])
        if self.action == "insert":
            rows.append(dict(self.payload))
            return SimpleNamespace(data=[self.payload])
        if self.action == "upsert":
            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = (self.on_conflict or "id").split(",")
            for item in payload:
                for i, row in enumerate(rows):
                    if all(row.get(k) == item.get(k) for k in keys):
                        rows[i] = dict(item)
                        break
                else:
                    rows.append(dict(item))
            return SimpleNamespace(data=payload)
        matched = [row for row in rows if all(f(row) for f in self.filters)]
        if self.action == "update":
            for row in matched:
                row.update(self.payload)
            return SimpleNamespace(data=matched)
        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda r: str(r.get(column)), reverse=desc)
        if self.limit_n is not None:
            matched = matched[:self.limit_n]
        return SimpleNamespace(data=[dict(r) for r in matched])


class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name

    def upload(self, path, data, file_options=None):
        if self.storage.fail_uploads:
            raise RuntimeError("bucket not found")
        self.storage.objects[(self.name, path)] = (data, file_options)
        return SimpleNamespace(path=path)

    def get_public_url(self, path):
        return f"https://files.example.test/{self.name}/{path}"


class FakeStorage:
    def __init__(self):
        self.objects = {}
        self.fail_uploads = False

    def from_(self, bucket):
        return FakeBucket(self, bucket)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failing = set()
        self.storage = FakeStorage()

    def table(self, name):
        return FakeQuery(self, name)


class VirtualTimer:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired_at = None

    def cancel(self):
        self.cancelled = True


class VirtualTimers:
    """Timer factory for WakeupScheduler driven by an explicit clock."""

    def __init__(self, now):
        self.now = now
        self.created = []

    def __call__(self, delay, callback):
        timer = VirtualTimer(self.now + timedelta(seconds=delay), callback)
        self.created.append(timer)
        return timer

    @property
    def live(self):
        return [t for t in self.created if not t.cancelled and t.fired_at is None]

    def advance(self, **delta):
        target = self.now + timedelta(**delta)
        for timer in sorted(self.live, key=lambda t: t.due):
            if timer.due <= target and not timer.cancelled:
                self.now = timer.due
                timer.fired_at = timer.due
                timer.callback()
        self.now = target
        return self.now


@pytest.fixture
def now():
    return datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def virtual_timers(now):
    return VirtualTimers(now)
