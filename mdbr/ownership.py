from __future__ import annotations

import copy
from typing import Any

from .errors import OwnershipLinkError
from .kinds import ResourceKind, Scheme


def controller_ref(obj: dict[str, Any]) -> dict[str, Any] | None:
    for ref in (obj.get("metadata") or {}).get("ownerReferences") or []:
        if ref.get("controller"):
            return ref
    return None


def set_controller_reference(owner: dict[str, Any], obj: dict[str, Any], scheme: Scheme) -> dict[str, Any]:
    """Return a copy of ``obj`` whose controller reference points at ``owner``.

    The API server's garbage collector deletes the child once the owner is
    gone. Raises :class:`OwnershipLinkError` instead of producing a child
    that nothing would clean up.
    """
    try:
        kind = scheme.kind_for(owner)
    except ValueError as e:
        raise OwnershipLinkError(str(e)) from e

    owner_meta = owner.get("metadata") or {}
    meta = obj.get("metadata") or {}
    if not owner_meta.get("name") or not owner_meta.get("uid"):
        raise OwnershipLinkError(f"{kind.kind} owner has no name/uid; it must be read from the store first.")
    if owner_meta.get("namespace") != meta.get("namespace"):
        raise OwnershipLinkError(
            f"cross-namespace owner references are disallowed: owner {owner_meta.get('namespace')}/"
            f"{owner_meta['name']}, object {meta.get('namespace')}/{meta.get('name')}"
        )

    ref = {
        "apiVersion": kind.api_version,
        "kind": kind.kind,
        "name": owner_meta["name"],
        "uid": owner_meta["uid"],
        "controller": True,
        "blockOwnerDeletion": True,
    }
    existing = controller_ref(obj)
    if existing is not None and existing.get("uid") != ref["uid"]:
        raise OwnershipLinkError(
            f"{meta.get('namespace')}/{meta.get('name')} is already controlled by "
            f"{existing.get('kind')} {existing.get('name')}"
        )

    out = copy.deepcopy(obj)
    refs = [r for r in out.setdefault("metadata", {}).get("ownerReferences") or [] if r.get("uid") != ref["uid"]]
    refs.append(ref)
    out["metadata"]["ownerReferences"] = refs
    return out


def controller_owner_key(obj: dict[str, Any], owner_kind: ResourceKind) -> tuple[str, str] | None:
    """(namespace, name) of the ``owner_kind`` controlling ``obj``, if any."""
    ref = controller_ref(obj)
    if ref is None:
        return None
    if ref.get("kind") != owner_kind.kind or ref.get("apiVersion") != owner_kind.api_version:
        return None
    return (obj.get("metadata") or {}).get("namespace", ""), ref.get("name", "")
