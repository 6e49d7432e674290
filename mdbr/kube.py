from __future__ import annotations

import json
from typing import Any, Callable

import urllib3
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from .errors import AlreadyExistsError, ConflictError, NotFoundError, StoreError
from .kinds import DEFAULT_SCHEME, SERVICE, STATEFULSET, ResourceKind, Scheme
from .settings import settings

# Built-in kinds go through the typed APIs; the method names share a suffix.
_TYPED = {
    SERVICE: ("core", "service"),
    STATEFULSET: ("apps", "stateful_set"),
}


def _error_for(e: ApiException, what: str) -> StoreError:
    try:
        body = json.loads(e.body) if e.body else {}
    except (TypeError, ValueError):
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = f"{what}: HTTP {e.status}: {body.get('message') or e.reason}"
    if e.status == 404:
        return NotFoundError(message, status_code=404)
    if e.status == 409:
        if body.get("reason") == "AlreadyExists":
            return AlreadyExistsError(message, status_code=409)
        return ConflictError(message, status_code=409)
    return StoreError(message, status_code=e.status)


def load_config() -> None:
    """In-cluster service account first, then the local kubeconfig."""
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


class KubeStore:
    """Resource store backed by the Kubernetes API server.

    Writes are replaces of the full object, so the API server enforces
    optimistic concurrency on the resourceVersion each object carries.
    Objects go in and come out as plain camelCase dicts.
    """

    def __init__(
        self,
        api_client: client.ApiClient | None = None,
        scheme: Scheme = DEFAULT_SCHEME,
        timeout_s: float | None = None,
        core: Any = None,
        apps: Any = None,
        custom: Any = None,
    ) -> None:
        self.scheme = scheme
        self.api_client = api_client or client.ApiClient()
        self.timeout_s = settings.request_timeout_s if timeout_s is None else timeout_s
        self.core = core or client.CoreV1Api(self.api_client)
        self.apps = apps or client.AppsV1Api(self.api_client)
        self.custom = custom or client.CustomObjectsApi(self.api_client)

    @classmethod
    def from_config(cls) -> KubeStore:
        load_config()
        return cls()

    def close(self) -> None:
        self.api_client.close()

    def _call(self, what: str, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, _request_timeout=self.timeout_s, **kwargs)
        except ApiException as e:
            raise _error_for(e, what) from e
        except urllib3.exceptions.HTTPError as e:
            raise StoreError(f"{what}: {type(e).__name__}: {e}") from e

    def _as_dict(self, kind: ResourceKind, obj: Any) -> dict[str, Any]:
        data = obj if isinstance(obj, dict) else self.api_client.sanitize_for_serialization(obj)
        # Typed list items come back without their type meta.
        data.setdefault("apiVersion", kind.api_version)
        data.setdefault("kind", kind.kind)
        return data

    def _typed(self, kind: ResourceKind, op: str) -> Callable[..., Any] | None:
        if kind not in _TYPED:
            return None
        api, suffix = _TYPED[kind]
        return getattr(getattr(self, api), op.format(suffix))

    def get(self, kind: ResourceKind, namespace: str, name: str) -> dict[str, Any]:
        what = f"get {kind.kind} {namespace}/{name}"
        fn = self._typed(kind, "read_namespaced_{}")
        if fn is not None:
            return self._as_dict(kind, self._call(what, fn, name, namespace))
        obj = self._call(
            what, self.custom.get_namespaced_custom_object, kind.group, kind.version, namespace, kind.plural, name
        )
        return self._as_dict(kind, obj)

    def list(self, kind: ResourceKind, namespace: str | None = None) -> list[dict[str, Any]]:
        what = f"list {kind.plural} in {namespace or 'all namespaces'}"
        if kind in _TYPED:
            if namespace:
                resp = self._call(what, self._typed(kind, "list_namespaced_{}"), namespace)
            else:
                resp = self._call(what, self._typed(kind, "list_{}_for_all_namespaces"))
            items = resp.items or []
        else:
            if namespace:
                resp = self._call(
                    what, self.custom.list_namespaced_custom_object, kind.group, kind.version, namespace, kind.plural
                )
            else:
                resp = self._call(what, self.custom.list_cluster_custom_object, kind.group, kind.version, kind.plural)
            items = resp.get("items") or []
        return [self._as_dict(kind, item) for item in items]

    def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        kind = self.scheme.kind_for(obj)
        meta = obj.get("metadata") or {}
        namespace = meta.get("namespace")
        what = f"create {kind.kind} {namespace}/{meta.get('name')}"
        fn = self._typed(kind, "create_namespaced_{}")
        if fn is not None:
            return self._as_dict(kind, self._call(what, fn, namespace, obj))
        created = self._call(
            what, self.custom.create_namespaced_custom_object, kind.group, kind.version, namespace, kind.plural, obj
        )
        return self._as_dict(kind, created)

    def _replace(self, obj: dict[str, Any], status: bool) -> dict[str, Any]:
        kind = self.scheme.kind_for(obj)
        meta = obj.get("metadata") or {}
        namespace, name = meta.get("namespace"), meta.get("name")
        what = f"{'update status of' if status else 'update'} {kind.kind} {namespace}/{name}"
        fn = self._typed(kind, "replace_namespaced_{}_status" if status else "replace_namespaced_{}")
        if fn is not None:
            return self._as_dict(kind, self._call(what, fn, name, namespace, obj))
        custom_fn = (
            self.custom.replace_namespaced_custom_object_status if status else self.custom.replace_namespaced_custom_object
        )
        replaced = self._call(what, custom_fn, kind.group, kind.version, namespace, kind.plural, name, obj)
        return self._as_dict(kind, replaced)

    def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        return self._replace(obj, status=False)

    def update_status(self, obj: dict[str, Any]) -> dict[str, Any]:
        return self._replace(obj, status=True)
