"""Desired child objects for a MongoDB parent.

Everything here is a pure function of the parent: same parent in, same
children out. Nothing is read from or written to the store.
"""
from __future__ import annotations

from typing import Any

from .api_models import MongoDB
from .kinds import SERVICE, STATEFULSET

DEFAULT_REPLICAS = 1
DEFAULT_STORAGE = "100Gi"

MONGO_PORT = 27017
GRACE_PERIOD_S = 10
VOLUME_NAME = "mongo-persistent-storage"
MONGO_IMAGE = "mongo"
SIDECAR_IMAGE = "cvallance/mongo-k8s-sidecar"

# Pod template, service selector and volume claim all carry this label.
SELECTOR_LABEL = "statefulset"
SERVICE_ROLE_LABEL = "mongodb-service"
STATEFULSET_ROLE_LABEL = "mongodb-statefulset"


def service_name(parent_name: str) -> str:
    return f"{parent_name}-mongodb-service"


def statefulset_name(parent_name: str) -> str:
    return f"{parent_name}-mongodb-statefulset"


def selector_labels(parent_name: str) -> dict[str, str]:
    return {SELECTOR_LABEL: statefulset_name(parent_name)}


def with_defaults(parent: MongoDB) -> MongoDB:
    """Copy of ``parent`` with unset replicas/storage filled in.

    The defaults only live for the current pass; they are never written back
    to the stored spec.
    """
    spec = parent.spec.model_copy(
        update={
            "replicas": parent.spec.replicas if parent.spec.replicas is not None else DEFAULT_REPLICAS,
            "storage": parent.spec.storage if parent.spec.storage is not None else DEFAULT_STORAGE,
        }
    )
    return parent.model_copy(update={"spec": spec})


def _role_labels(parent: MongoDB, role_label: str) -> dict[str, str]:
    labels = parent.labels
    labels[role_label] = parent.name
    return labels


def generate_service(parent: MongoDB) -> dict[str, Any]:
    return {
        "apiVersion": SERVICE.api_version,
        "kind": SERVICE.kind,
        "metadata": {
            "name": service_name(parent.name),
            "namespace": parent.namespace,
            "labels": _role_labels(parent, SERVICE_ROLE_LABEL),
        },
        "spec": {
            "ports": [{"name": "mongodb", "protocol": "TCP", "port": MONGO_PORT, "targetPort": MONGO_PORT}],
            "selector": selector_labels(parent.name),
        },
    }


def _containers(parent: MongoDB) -> list[dict[str, Any]]:
    selector = ",".join(f"{k}={v}" for k, v in selector_labels(parent.name).items())
    return [
        {
            "name": "mongo",
            "image": MONGO_IMAGE,
            "command": ["mongod", "--replSet", "rs0", "--bind_ip_all"],
            "ports": [{"containerPort": MONGO_PORT}],
            "volumeMounts": [{"name": VOLUME_NAME, "mountPath": "/data/db"}],
        },
        {
            # Joins new pods into the replica set.
            "name": "mongo-sidecar",
            "image": SIDECAR_IMAGE,
            "env": [
                {"name": "MONGO_SIDECAR_POD_LABELS", "value": selector},
                {"name": "KUBERNETES_MONGO_SERVICE_NAME", "value": service_name(parent.name)},
            ],
        },
    ]


def generate_statefulset(parent: MongoDB) -> dict[str, Any]:
    parent = with_defaults(parent)
    return {
        "apiVersion": STATEFULSET.api_version,
        "kind": STATEFULSET.kind,
        "metadata": {
            "name": statefulset_name(parent.name),
            "namespace": parent.namespace,
            "labels": _role_labels(parent, STATEFULSET_ROLE_LABEL),
        },
        "spec": {
            "replicas": parent.spec.replicas,
            "serviceName": service_name(parent.name),
            "selector": {"matchLabels": selector_labels(parent.name)},
            "template": {
                "metadata": {"labels": selector_labels(parent.name)},
                "spec": {
                    "terminationGracePeriodSeconds": GRACE_PERIOD_S,
                    "containers": _containers(parent),
                },
            },
            "volumeClaimTemplates": [
                {
                    "metadata": {"name": VOLUME_NAME, "labels": selector_labels(parent.name)},
                    "spec": {
                        "accessModes": ["ReadWriteOnce"],
                        "resources": {"requests": {"storage": parent.spec.storage}},
                    },
                }
            ],
        },
    }
