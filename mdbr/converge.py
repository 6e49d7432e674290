from __future__ import annotations

from enum import Enum
from typing import Any

from . import db
from .api_models import MongoDB
from .children import ChildHandler
from .context import ControllerContext
from .errors import NotFoundError
from .ownership import set_controller_reference


class Outcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


def converge_child(
    ctx: ControllerContext,
    parent: MongoDB,
    parent_obj: dict[str, Any],
    handler: ChildHandler,
) -> tuple[Outcome, dict[str, Any]]:
    """Create or update one child so it matches what ``parent`` asks for.

    ``parent`` is the defaulted model used for generation, ``parent_obj`` the
    stored object the ownership reference points at. Store errors other than
    not-found propagate unchanged; nothing is retried here.
    """
    desired = handler.generate(parent)
    kind = handler.kind.kind
    name = desired["metadata"]["name"]

    try:
        live = handler.fetch(ctx, parent)
    except NotFoundError:
        owned = set_controller_reference(parent_obj, desired, ctx.scheme)
        created = ctx.store.create(owned)
        db.log_event("INFO", f"Created {kind} {name}", namespace=parent.namespace, name=parent.name)
        return Outcome.CREATED, created

    result = handler.merge(desired, live)
    if result.up_to_date:
        db.log_event("INFO", f"{kind} {name} is up to date", namespace=parent.namespace, name=parent.name)
        return Outcome.UNCHANGED, live

    updated = handler.apply(ctx, result.merged)
    db.log_event("INFO", f"Updated {kind} {name}", namespace=parent.namespace, name=parent.name)
    return Outcome.UPDATED, updated
