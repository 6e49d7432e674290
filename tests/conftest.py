import dataclasses
import sys

import pytest

# Ensure project root is importable (so `import cli` works without installing)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from mdbr import db  # noqa: E402
from mdbr.context import ControllerContext  # noqa: E402
from mdbr.kinds import MONGODB  # noqa: E402
from mdbr.store import InMemoryStore  # noqa: E402


@pytest.fixture(autouse=True)
def event_db(tmp_path, monkeypatch):
    """Every test writes its events to its own sqlite file."""
    monkeypatch.setattr(db, "settings", dataclasses.replace(db.settings, db_path=str(tmp_path / "events.db")))
    db.init_db()


class RecordingStore:
    """Wraps a store, records every call and injects failures on demand."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []
        self._failures = []

    def fail_on(self, method, kind, exc, after=0):
        """Raise ``exc`` from the (after+1)-th ``method`` call for ``kind``."""
        self._failures.append({"method": method, "kind": kind, "exc": exc, "after": after})

    def writes(self):
        return [c for c in self.calls if c[0] in ("create", "update", "update_status")]

    def _call(self, method, kind, name, fn, *args):
        self.calls.append((method, kind, name))
        for f in list(self._failures):
            if f["method"] == method and f["kind"] == kind:
                if f["after"] == 0:
                    self._failures.remove(f)
                    raise f["exc"]
                f["after"] -= 1
        return fn(*args)

    def get(self, kind, namespace, name):
        return self._call("get", kind.kind, name, self.inner.get, kind, namespace, name)

    def list(self, kind, namespace=None):
        return self._call("list", kind.kind, None, self.inner.list, kind, namespace)

    def create(self, obj):
        return self._call("create", obj["kind"], obj["metadata"]["name"], self.inner.create, obj)

    def update(self, obj):
        return self._call("update", obj["kind"], obj["metadata"]["name"], self.inner.update, obj)

    def update_status(self, obj):
        return self._call("update_status", obj["kind"], obj["metadata"]["name"], self.inner.update_status, obj)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def recording(store):
    return RecordingStore(store)


@pytest.fixture
def ctx(recording):
    return ControllerContext(store=recording)


def mongodb_object(name="db1", namespace="ns", replicas=None, storage=None, labels=None):
    spec = {}
    if replicas is not None:
        spec["replicas"] = replicas
    if storage is not None:
        spec["storage"] = storage
    meta = {"name": name, "namespace": namespace}
    if labels:
        meta["labels"] = dict(labels)
    return {"apiVersion": MONGODB.api_version, "kind": MONGODB.kind, "metadata": meta, "spec": spec}


@pytest.fixture
def make_parent(store):
    """Create a MongoDB in the in-memory store and return the stored object."""

    def _make(**kwargs):
        return store.create(mongodb_object(**kwargs))

    return _make


@pytest.fixture
def parent_object():
    """Factory for MongoDB dicts that are not stored anywhere."""
    return mongodb_object
