import pytest

from mdbr.api_models import MongoDB
from mdbr.children import ServiceHandler, StatefulSetHandler
from mdbr.converge import Outcome, converge_child
from mdbr.errors import NotFoundError, OwnershipLinkError, StoreError
from mdbr.generate import with_defaults
from mdbr.kinds import SERVICE, STATEFULSET


def _parent(obj):
    return with_defaults(MongoDB.from_object(obj))


def test_missing_child_is_created_with_owner_reference(ctx, store, make_parent):
    parent_obj = make_parent()

    outcome, created = converge_child(ctx, _parent(parent_obj), parent_obj, ServiceHandler())

    assert outcome is Outcome.CREATED
    ref = created["metadata"]["ownerReferences"][0]
    assert (ref["kind"], ref["name"], ref["uid"]) == ("MongoDB", "db1", parent_obj["metadata"]["uid"])
    assert store.get(SERVICE, "ns", "db1-mongodb-service") == created


def test_second_pass_is_a_no_op(ctx, recording, make_parent):
    parent_obj = make_parent()
    converge_child(ctx, _parent(parent_obj), parent_obj, StatefulSetHandler())
    recording.calls.clear()

    outcome, _ = converge_child(ctx, _parent(parent_obj), parent_obj, StatefulSetHandler())

    assert outcome is Outcome.UNCHANGED
    assert recording.writes() == []


def test_drifted_child_is_updated_in_place(ctx, store, make_parent):
    parent_obj = make_parent()
    _, created = converge_child(ctx, _parent(parent_obj), parent_obj, ServiceHandler())
    created["spec"]["selector"] = {"statefulset": "hijacked"}
    store.update(created)

    outcome, updated = converge_child(ctx, _parent(parent_obj), parent_obj, ServiceHandler())

    assert outcome is Outcome.UPDATED
    assert updated["spec"]["selector"] == {"statefulset": "db1-mongodb-statefulset"}
    assert updated["spec"]["clusterIP"] == created["spec"]["clusterIP"]
    assert updated["metadata"]["uid"] == created["metadata"]["uid"]


def test_ownership_failure_aborts_before_create(ctx, recording, parent_object):
    parent_obj = parent_object()  # never stored, so it has no uid

    with pytest.raises(OwnershipLinkError):
        converge_child(ctx, _parent(parent_obj), parent_obj, ServiceHandler())

    assert recording.writes() == []


def test_fetch_errors_other_than_not_found_propagate(ctx, recording, make_parent):
    parent_obj = make_parent()
    recording.fail_on("get", "StatefulSet", StoreError("apiserver timeout", status_code=504))

    with pytest.raises(StoreError, match="apiserver timeout"):
        converge_child(ctx, _parent(parent_obj), parent_obj, StatefulSetHandler())

    assert recording.writes() == []
    with pytest.raises(NotFoundError):
        recording.inner.get(STATEFULSET, "ns", "db1-mongodb-statefulset")
