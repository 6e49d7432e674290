from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ResourceKind:
    group: str
    version: str
    kind: str
    plural: str

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version


MONGODB = ResourceKind("databases.example.com", "v1alpha1", "MongoDB", "mongodbs")
SERVICE = ResourceKind("", "v1", "Service", "services")
STATEFULSET = ResourceKind("apps", "v1", "StatefulSet", "statefulsets")


class Scheme:
    """Registry of the kinds this controller reads and writes."""

    def __init__(self, kinds: list[ResourceKind] | None = None) -> None:
        self._by_key: dict[tuple[str, str], ResourceKind] = {}
        for k in kinds or []:
            self.register(k)

    def register(self, kind: ResourceKind) -> None:
        self._by_key[(kind.api_version, kind.kind)] = kind

    def kinds(self) -> list[ResourceKind]:
        return list(self._by_key.values())

    def kind_for(self, obj: dict[str, Any]) -> ResourceKind:
        key = (obj.get("apiVersion", ""), obj.get("kind", ""))
        try:
            return self._by_key[key]
        except KeyError:
            raise ValueError(f"Unregistered kind {key[1]!r} ({key[0]!r}).") from None


DEFAULT_SCHEME = Scheme([MONGODB, SERVICE, STATEFULSET])


@dataclass(frozen=True, order=True)
class ObjectKey:
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, raw: str) -> ObjectKey:
        namespace, sep, name = raw.partition("/")
        if not sep or not namespace or not name:
            raise ValueError(f"Expected <namespace>/<name>, got {raw!r}.")
        return cls(namespace, name)
