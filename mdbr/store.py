from __future__ import annotations

import copy
import itertools
import uuid
from threading import Lock
from typing import Any, Protocol

from .db import utc_now
from .errors import AlreadyExistsError, ConflictError, NotFoundError, StoreError
from .kinds import DEFAULT_SCHEME, ResourceKind, Scheme


class ResourceStore(Protocol):
    """What the controller needs from the API server.

    Objects are plain JSON-shaped dicts. Every call returns the object as
    stored; failures raise :class:`~mdbr.errors.StoreError` subclasses.
    """

    def get(self, kind: ResourceKind, namespace: str, name: str) -> dict[str, Any]: ...

    def list(self, kind: ResourceKind, namespace: str | None = None) -> list[dict[str, Any]]: ...

    def create(self, obj: dict[str, Any]) -> dict[str, Any]: ...

    def update(self, obj: dict[str, Any]) -> dict[str, Any]: ...

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]: ...


# Status the real controllers would publish right after creation.
_INITIAL_STATUS: dict[str, dict[str, Any]] = {
    "Service": {"loadBalancer": {}},
    "StatefulSet": {"replicas": 0},
}


def _without_version(obj: dict[str, Any]) -> dict[str, Any]:
    out = copy.deepcopy(obj)
    out.get("metadata", {}).pop("resourceVersion", None)
    return out


class InMemoryStore:
    """Single-process stand-in for the API server.

    Mirrors the behaviour the controller depends on: server-assigned
    identity fields, optimistic concurrency on resourceVersion, separate
    spec and status write paths, cluster IP allocation for Services and
    cascade deletion through ownerReferences.
    """

    def __init__(self, scheme: Scheme = DEFAULT_SCHEME) -> None:
        self.scheme = scheme
        self.lock = Lock()
        self._objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self._rv = 0
        self._ips = itertools.count(10)

    def _next_rv(self) -> str:
        self._rv += 1
        return str(self._rv)

    def _key_for(self, obj: dict[str, Any]) -> tuple[ResourceKind, tuple[str, str, str]]:
        kind = self.scheme.kind_for(obj)
        meta = obj.get("metadata") or {}
        name, namespace = meta.get("name"), meta.get("namespace")
        if not name or not namespace:
            raise StoreError(f"{kind.kind} must have metadata.name and metadata.namespace", status_code=422)
        return kind, (kind.kind, namespace, name)

    def _current(self, kind: ResourceKind, key: tuple[str, str, str]) -> dict[str, Any]:
        current = self._objects.get(key)
        if current is None:
            raise NotFoundError(f'{kind.plural} "{key[2]}" not found', status_code=404)
        return current

    @staticmethod
    def _check_version(obj: dict[str, Any], current: dict[str, Any]) -> None:
        sent = (obj.get("metadata") or {}).get("resourceVersion")
        have = current["metadata"]["resourceVersion"]
        if sent != have:
            name = current["metadata"]["name"]
            raise ConflictError(
                f'Operation cannot be fulfilled on "{name}": the object has been modified '
                f"(sent resourceVersion {sent!r}, current {have!r})",
                status_code=409,
            )

    def get(self, kind: ResourceKind, namespace: str, name: str) -> dict[str, Any]:
        with self.lock:
            return copy.deepcopy(self._current(kind, (kind.kind, namespace, name)))

    def list(self, kind: ResourceKind, namespace: str | None = None) -> list[dict[str, Any]]:
        with self.lock:
            items = [
                copy.deepcopy(o)
                for (k, ns, _), o in sorted(self._objects.items())
                if k == kind.kind and (not namespace or ns == namespace)
            ]
        return items

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind, key = self._key_for(obj)
        with self.lock:
            if key in self._objects:
                raise AlreadyExistsError(f'{kind.plural} "{key[2]}" already exists', status_code=409)
            stored = copy.deepcopy(obj)
            meta = stored.setdefault("metadata", {})
            meta["uid"] = str(uuid.uuid4())
            meta["resourceVersion"] = self._next_rv()
            meta["creationTimestamp"] = utc_now()
            meta["generation"] = 1
            stored["status"] = copy.deepcopy(_INITIAL_STATUS.get(kind.kind, {}))
            if kind.kind == "Service":
                stored.setdefault("spec", {}).setdefault("clusterIP", self._allocate_ip())
            self._objects[key] = stored
            return copy.deepcopy(stored)

    def _allocate_ip(self) -> str:
        n = next(self._ips)
        return f"10.96.{n // 256}.{n % 256}"

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace spec and metadata; status is left as stored."""
        kind, key = self._key_for(obj)
        with self.lock:
            current = self._current(kind, key)
            self._check_version(obj, current)

            new = copy.deepcopy(obj)
            new["status"] = copy.deepcopy(current.get("status", {}))
            meta = new.setdefault("metadata", {})
            for field in ("uid", "creationTimestamp", "generation"):
                meta[field] = current["metadata"][field]

            if kind.kind == "Service":
                assigned = current.get("spec", {}).get("clusterIP")
                spec = new.setdefault("spec", {})
                if spec.get("clusterIP") in (None, ""):
                    spec["clusterIP"] = assigned
                elif spec["clusterIP"] != assigned:
                    raise StoreError(f'Service "{key[2]}" is invalid: spec.clusterIP: field is immutable', status_code=422)

            if _without_version(new) == _without_version(current):
                return copy.deepcopy(current)
            if new.get("spec") != current.get("spec"):
                meta["generation"] = current["metadata"]["generation"] + 1
            meta["resourceVersion"] = self._next_rv()
            self._objects[key] = new
            return copy.deepcopy(new)

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace status only."""
        kind, key = self._key_for(obj)
        with self.lock:
            current = self._current(kind, key)
            self._check_version(obj, current)
            new_status = copy.deepcopy(obj.get("status") or {})
            if new_status == current.get("status"):
                return copy.deepcopy(current)
            new = copy.deepcopy(current)
            new["status"] = new_status
            new["metadata"]["resourceVersion"] = self._next_rv()
            self._objects[key] = new
            return copy.deepcopy(new)

    def delete(self, kind: ResourceKind, namespace: str, name: str) -> None:
        """Delete an object and, transitively, everything it owns."""
        with self.lock:
            current = self._current(kind, (kind.kind, namespace, name))
            del self._objects[(kind.kind, namespace, name)]
            gone = {current["metadata"]["uid"]}
            while True:
                orphans = [
                    key
                    for key, o in self._objects.items()
                    if any(ref.get("uid") in gone for ref in o["metadata"].get("ownerReferences") or [])
                ]
                if not orphans:
                    break
                for key in orphans:
                    gone.add(self._objects.pop(key)["metadata"]["uid"])
