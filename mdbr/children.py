from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from .api_models import MongoDB
from .context import ControllerContext
from .generate import generate_service, generate_statefulset, service_name, statefulset_name
from .kinds import SERVICE, STATEFULSET, ResourceKind
from .merge import MergeResult, merge_service, merge_statefulset


class ChildHandler(ABC):
    """Everything the convergence engine needs to know about one child kind."""

    kind: ResourceKind

    @abstractmethod
    def name_for(self, parent: MongoDB) -> str: ...

    @abstractmethod
    def generate(self, parent: MongoDB) -> dict[str, Any]: ...

    @abstractmethod
    def merge(self, desired: dict[str, Any], live: dict[str, Any]) -> MergeResult: ...

    @abstractmethod
    def project_status(self, live: dict[str, Any]) -> dict[str, Any]:
        """Parent status fields (by their stored names) taken from the live child."""

    def fetch(self, ctx: ControllerContext, parent: MongoDB) -> dict[str, Any]:
        return ctx.store.get(self.kind, parent.namespace, self.name_for(parent))

    def apply(self, ctx: ControllerContext, merged: dict[str, Any]) -> dict[str, Any]:
        return ctx.store.update(merged)


class ServiceHandler(ChildHandler):
    kind = SERVICE

    def name_for(self, parent: MongoDB) -> str:
        return service_name(parent.name)

    def generate(self, parent: MongoDB) -> dict[str, Any]:
        return generate_service(parent)

    def merge(self, desired: dict[str, Any], live: dict[str, Any]) -> MergeResult:
        return merge_service(desired, live)

    def project_status(self, live: dict[str, Any]) -> dict[str, Any]:
        out: dict[str, Any] = {"serviceStatus": dict(live.get("status") or {})}
        cluster_ip = (live.get("spec") or {}).get("clusterIP")
        if cluster_ip:
            out["clusterIP"] = cluster_ip
        return out


class StatefulSetHandler(ChildHandler):
    kind = STATEFULSET

    def name_for(self, parent: MongoDB) -> str:
        return statefulset_name(parent.name)

    def generate(self, parent: MongoDB) -> dict[str, Any]:
        return generate_statefulset(parent)

    def merge(self, desired: dict[str, Any], live: dict[str, Any]) -> MergeResult:
        return merge_statefulset(desired, live)

    def project_status(self, live: dict[str, Any]) -> dict[str, Any]:
        return {"statefulSetStatus": dict(live.get("status") or {})}


# Service first so the sidecar can resolve it once pods start.
CHILD_HANDLERS: tuple[ChildHandler, ...] = (ServiceHandler(), StatefulSetHandler())
