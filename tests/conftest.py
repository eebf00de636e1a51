"""Shared fixtures: isolated storage roots and an in-memory Realtime Database."""
import copy
import io
import os
import tempfile

_TEST_ROOT = tempfile.mkdtemp(prefix="inkwell-tests-")
os.environ["APP_ROOT"] = _TEST_ROOT
os.environ["UPLOADS_ROOT"] = os.path.join(_TEST_ROOT, "uploads")
os.environ["PUBLIC_UPLOADS_ROOT"] = os.path.join(_TEST_ROOT, "public", "uploads")
os.environ["API_TOKEN"] = "test-token"
os.environ["SCHEDULER_TOKEN"] = "scheduler-token"

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from app.main import app
from app.services import firebase_db as firebase_db_module
from app.services.firebase_db import FirebaseDB, get_post_store
from app.services.image_paths import ImagePathResolver, get_path_resolver
from app.services.storage import StorageService, get_storage_service


class FakeQuery:
    def __init__(self, ref, field):
        self._ref = ref
        self._field = field
        self._start = None
        self._end = None
        self._equal = None
        self._first = None
        self._last = None

    def start_at(self, value):
        self._start = value
        return self

    def end_at(self, value):
        self._end = value
        return self

    def equal_to(self, value):
        self._equal = value
        return self

    def limit_to_first(self, limit):
        self._first = limit
        return self

    def limit_to_last(self, limit):
        self._last = limit
        return self

    def get(self):
        items = self._ref.get() or {}
        rows = [(k, v) for k, v in items.items() if isinstance(v, dict) and self._field in v]
        if self._equal is not None:
            rows = [(k, v) for k, v in rows if v[self._field] == self._equal]
        if self._start is not None:
            rows = [(k, v) for k, v in rows if v[self._field] >= self._start]
        if self._end is not None:
            rows = [(k, v) for k, v in rows if v[self._field] <= self._end]
        rows.sort(key=lambda row: row[1][self._field])
        if self._first is not None:
            rows = rows[: self._first]
        if self._last is not None:
            rows = rows[-self._last:]
        return dict(rows)


class FakeReference:
    def __init__(self, database, path):
        self._db = database
        self.path = path.strip("/")

    @property
    def key(self):
        return self.path.rsplit("/", 1)[-1] if self.path else None

    def _parts(self):
        return [part for part in self.path.split("/") if part]

    def child(self, name):
        return FakeReference(self._db, f"{self.path}/{name}")

    def get(self):
        node = self._db.data
        for part in self._parts():
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return copy.deepcopy(node)

    def set(self, value):
        parts = self._parts()
        node = self._db.data
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = copy.deepcopy(value)

    def update(self, values):
        for key, value in values.items():
            ref = self.child(key)
            if value is None:
                ref.delete()
            else:
                ref.set(value)

    def delete(self):
        parts = self._parts()
        node = self._db.data
        for part in parts[:-1]:
            node = node.get(part)
            if not isinstance(node, dict):
                return
        node.pop(parts[-1], None)

    def push(self):
        self._db.counter += 1
        return self.child(f"-key{self._db.counter:04d}")

    def order_by_child(self, field):
        return FakeQuery(self, field)


class FakeDatabase:
    def __init__(self):
        self.data = {}
        self.counter = 0

    def reference(self, path="/"):
        return FakeReference(self, path)


@pytest.fixture
def fake_db(monkeypatch):
    database = FakeDatabase()
    monkeypatch.setattr(firebase_db_module, "db", database)
    monkeypatch.setattr(firebase_db_module, "_initialise_app", lambda: None)
    return database


@pytest.fixture
def store(fake_db):
    return FirebaseDB()


@pytest.fixture
def upload_roots(tmp_path):
    primary = tmp_path / "uploads"
    public = tmp_path / "public" / "uploads"
    primary.mkdir(parents=True)
    public.mkdir(parents=True)
    return primary, public


@pytest.fixture
def resolver(tmp_path, upload_roots):
    primary, public = upload_roots
    return ImagePathResolver(primary, public, tmp_path)


@pytest.fixture
def storage(upload_roots):
    return StorageService(upload_roots[0], max_upload_bytes=5 * 1024 * 1024)


@pytest.fixture
def client(store, resolver, storage):
    app.dependency_overrides[get_post_store] = lambda: store
    app.dependency_overrides[get_path_resolver] = lambda: resolver
    app.dependency_overrides[get_storage_service] = lambda: storage
    test_client = TestClient(app)
    yield test_client
    test_client.close()
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    return {"X-API-Token": "test-token"}


def png_bytes(size=(8, 8), color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def make_png():
    return png_bytes
