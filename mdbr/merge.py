"""Field-scoped merge of a generated child into its live counterpart.

The controller owns:
 - metadata.labels and metadata.annotations (both kinds)
 - spec.selector and spec.ports (Service)
 - the whole spec (StatefulSet)

Everything else on the live object (clusterIP, server-set metadata,
status) is carried over untouched. Inputs are never mutated; the merged
object is a fresh copy of the live one.

Labels and annotations are compared loosely:
only keys already present on the live object are checked, then the live
map is replaced by the desired one. Two consequences follow:
 - a label added by someone else is dropped on the next write
 - a key that exists only in the desired map does not by itself trigger
   a write
"""
from __future__ import annotations

import copy
from typing import Any, NamedTuple

from kubernetes.utils import parse_quantity

# Resource quantities the API server rewrites to canonical form (1024Mi -> 1Gi).
QUANTITY_FIELDS = frozenset({"storage", "cpu", "memory"})


class MergeResult(NamedTuple):
    up_to_date: bool
    merged: dict[str, Any]


def owned_equal(desired: Any, live: Any) -> bool:
    """Structural equality restricted to what ``desired`` spells out.

    Keys the API server defaults (protocol, podManagementPolicy, ...) but the
    generator never sets are not owned and do not count as drift. Lists must
    match in length and element by element. Resource quantities compare by
    value.
    """
    if isinstance(desired, dict):
        if not isinstance(live, dict):
            return False
        return all(
            _quantity_equal(v, live.get(k)) if k in QUANTITY_FIELDS else owned_equal(v, live.get(k))
            for k, v in desired.items()
        )
    if isinstance(desired, list):
        if not isinstance(live, list) or len(desired) != len(live):
            return False
        return all(owned_equal(d, l) for d, l in zip(desired, live))
    return desired == live


def _quantity_equal(desired: Any, live: Any) -> bool:
    if not isinstance(desired, str) or not isinstance(live, str):
        return owned_equal(desired, live)
    try:
        return parse_quantity(desired) == parse_quantity(live)
    except ValueError:
        return desired == live


def _string_map_mismatch(desired: dict[str, str] | None, live: dict[str, str] | None) -> bool:
    desired = desired or {}
    return any(desired.get(k, "") != v for k, v in (live or {}).items())


def _merge_metadata(desired: dict[str, Any], merged: dict[str, Any]) -> bool:
    """Replace labels/annotations on ``merged``; return True if they differed."""
    want = desired.get("metadata") or {}
    meta = merged.setdefault("metadata", {})
    changed = False
    for field in ("labels", "annotations"):
        if _string_map_mismatch(want.get(field), meta.get(field)):
            changed = True
        if want.get(field):
            meta[field] = dict(want[field])
        else:
            meta.pop(field, None)
    return changed


def merge_service(desired: dict[str, Any], live: dict[str, Any]) -> MergeResult:
    merged = copy.deepcopy(live)
    changed = _merge_metadata(desired, merged)

    want = desired.get("spec") or {}
    spec = merged.setdefault("spec", {})
    # The whole spec is not copied: clusterIP belongs to the API server.
    if want.get("selector") != spec.get("selector"):
        changed = True
    spec["selector"] = copy.deepcopy(want.get("selector"))

    if not owned_equal(want.get("ports"), spec.get("ports")):
        changed = True
    spec["ports"] = copy.deepcopy(want.get("ports"))

    return MergeResult(not changed, merged)


def merge_statefulset(desired: dict[str, Any], live: dict[str, Any]) -> MergeResult:
    merged = copy.deepcopy(live)
    changed = _merge_metadata(desired, merged)

    if not owned_equal(desired.get("spec"), live.get("spec")):
        changed = True
    merged["spec"] = copy.deepcopy(desired.get("spec"))

    return MergeResult(not changed, merged)
