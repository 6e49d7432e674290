import json

import pytest
import urllib3
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from mdbr import kube
from mdbr.errors import AlreadyExistsError, ConflictError, NotFoundError, StoreError
from mdbr.kinds import MONGODB, SERVICE, STATEFULSET
from mdbr.kube import KubeStore


class FakeApi:
    """Stands in for one of the generated API classes; records every call."""

    def __init__(self, responses=None, raises=None):
        self.calls = []
        self.responses = responses or {}
        self.raises = raises

    def __getattr__(self, method):
        if method.startswith("_"):
            raise AttributeError(method)

        def call(*args, **kwargs):
            self.calls.append((method, args))
            if self.raises is not None:
                raise self.raises
            resp = self.responses.get(method)
            return resp(*args) if callable(resp) else resp

        return call


def _store(core=None, apps=None, custom=None):
    return KubeStore(
        api_client=client.ApiClient(),
        timeout_s=5,
        core=core or FakeApi(),
        apps=apps or FakeApi(),
        custom=custom or FakeApi(),
    )


def _echo_body(*args):
    return args[-1]


def _api_error(status, reason="", message="nope"):
    e = ApiException(status=status, reason=reason or "Error")
    e.body = json.dumps({"kind": "Status", "reason": reason, "message": message})
    return e


def test_typed_reads_come_back_as_camel_case_dicts():
    svc = client.V1Service(
        metadata=client.V1ObjectMeta(name="db1-mongodb-service", namespace="ns", resource_version="5"),
        spec=client.V1ServiceSpec(cluster_ip="10.96.0.9", selector={"statefulset": "db1-mongodb-statefulset"}),
    )
    core = FakeApi({"read_namespaced_service": svc})

    obj = _store(core=core).get(SERVICE, "ns", "db1-mongodb-service")

    assert core.calls == [("read_namespaced_service", ("db1-mongodb-service", "ns"))]
    assert obj["apiVersion"] == "v1"
    assert obj["kind"] == "Service"
    assert obj["metadata"]["resourceVersion"] == "5"
    assert obj["spec"]["clusterIP"] == "10.96.0.9"


def test_reads_are_routed_by_kind():
    apps = FakeApi({"read_namespaced_stateful_set": {"metadata": {"name": "s"}}})
    custom = FakeApi({"get_namespaced_custom_object": {"metadata": {"name": "db1"}}})
    store = _store(apps=apps, custom=custom)

    store.get(STATEFULSET, "ns", "db1-mongodb-statefulset")
    parent = store.get(MONGODB, "ns", "db1")

    assert apps.calls == [("read_namespaced_stateful_set", ("db1-mongodb-statefulset", "ns"))]
    assert custom.calls == [
        ("get_namespaced_custom_object", ("databases.example.com", "v1alpha1", "ns", "mongodbs", "db1")),
    ]
    assert parent["kind"] == "MongoDB"


def test_writes_use_create_replace_and_the_status_subresource():
    core = FakeApi({"create_namespaced_service": _echo_body, "replace_namespaced_service": _echo_body})
    custom = FakeApi({"replace_namespaced_custom_object_status": _echo_body})
    store = _store(core=core, custom=custom)
    svc = {"apiVersion": "v1", "kind": "Service", "metadata": {"name": "s", "namespace": "ns"}}
    parent = {"apiVersion": MONGODB.api_version, "kind": "MongoDB", "metadata": {"name": "db1", "namespace": "ns"}}

    store.create(svc)
    store.update(svc)
    assert store.update_status(parent) == parent

    assert core.calls == [
        ("create_namespaced_service", ("ns", svc)),
        ("replace_namespaced_service", ("s", "ns", svc)),
    ]
    assert custom.calls == [
        (
            "replace_namespaced_custom_object_status",
            ("databases.example.com", "v1alpha1", "ns", "mongodbs", "db1", parent),
        ),
    ]


def test_statefulset_status_goes_through_the_typed_status_call():
    apps = FakeApi({"replace_namespaced_stateful_set_status": _echo_body})
    sts = {"apiVersion": "apps/v1", "kind": "StatefulSet", "metadata": {"name": "s", "namespace": "ns"}}

    _store(apps=apps).update_status(sts)

    assert apps.calls == [("replace_namespaced_stateful_set_status", ("s", "ns", sts))]


def test_list_fills_in_type_meta():
    custom = FakeApi({"list_cluster_custom_object": {"items": [{"metadata": {"name": "db1", "namespace": "ns"}}]}})
    core = FakeApi(
        {"list_namespaced_service": client.V1ServiceList(items=[client.V1Service(metadata=client.V1ObjectMeta(name="s"))])}
    )
    store = _store(core=core, custom=custom)

    parents = store.list(MONGODB)
    services = store.list(SERVICE, "ns")

    assert custom.calls == [("list_cluster_custom_object", ("databases.example.com", "v1alpha1", "mongodbs"))]
    assert parents[0]["kind"] == "MongoDB"
    assert parents[0]["apiVersion"] == "databases.example.com/v1alpha1"
    assert services == [{"apiVersion": "v1", "kind": "Service", "metadata": {"name": "s"}}]


def test_namespaced_parent_list():
    custom = FakeApi({"list_namespaced_custom_object": {"items": []}})

    assert _store(custom=custom).list(MONGODB, "ns") == []
    assert custom.calls == [("list_namespaced_custom_object", ("databases.example.com", "v1alpha1", "ns", "mongodbs"))]


@pytest.mark.parametrize(
    "exc,error",
    [
        (_api_error(404, "NotFound"), NotFoundError),
        (_api_error(409, "AlreadyExists"), AlreadyExistsError),
        (_api_error(409, "Conflict"), ConflictError),
    ],
)
def test_api_errors_map_to_store_errors(exc, error):
    store = _store(core=FakeApi(raises=exc))

    with pytest.raises(error) as raised:
        store.get(SERVICE, "ns", "s")
    assert raised.value.status_code == exc.status
    assert raised.value.__cause__ is exc


def test_other_failures_are_plain_store_errors():
    exc = ApiException(status=500, reason="Internal Server Error")
    exc.body = "etcd unavailable"
    store = _store(apps=FakeApi(raises=exc))

    with pytest.raises(StoreError) as raised:
        store.get(STATEFULSET, "ns", "s")
    assert type(raised.value) is StoreError
    assert raised.value.status_code == 500
    assert "Internal Server Error" in str(raised.value)


def test_transport_errors_are_store_errors():
    store = _store(custom=FakeApi(raises=urllib3.exceptions.ProtocolError("connection aborted")))

    with pytest.raises(StoreError, match="ProtocolError"):
        store.list(MONGODB)


def test_kubeconfig_is_used_outside_a_cluster(monkeypatch):
    loaded = []

    def not_in_cluster():
        raise config.ConfigException("no service account")

    monkeypatch.setattr(kube.config, "load_incluster_config", not_in_cluster)
    monkeypatch.setattr(kube.config, "load_kube_config", lambda: loaded.append("kubeconfig"))

    kube.load_config()

    assert loaded == ["kubeconfig"]
