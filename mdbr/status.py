from __future__ import annotations

from typing import Any

from .api_models import MongoDB, MongoDBStatus
from .children import CHILD_HANDLERS, ChildHandler
from .context import ControllerContext
from .errors import PartialStatusError, StoreError


def aggregate_status(
    ctx: ControllerContext,
    parent: MongoDB,
    handlers: tuple[ChildHandler, ...] = CHILD_HANDLERS,
) -> MongoDBStatus:
    """Re-read every child and fold its observed status into a parent status.

    All children are read before anything is returned, so a failure on any
    one of them leaves the caller with nothing to write.
    """
    fields: dict[str, Any] = {}
    for handler in handlers:
        try:
            live = handler.fetch(ctx, parent)
        except StoreError as e:
            raise PartialStatusError(
                f"could not re-read {handler.kind.kind} {handler.name_for(parent)} for "
                f"{parent.namespace}/{parent.name}: {e}"
            ) from e
        fields.update(handler.project_status(live))
    return MongoDBStatus.model_validate(fields)


def write_status(ctx: ControllerContext, parent_obj: dict[str, Any], status: MongoDBStatus) -> dict[str, Any]:
    """Persist ``status`` through the status subresource.

    ``parent_obj`` must be the stored parent; its resourceVersion guards the
    write.
    """
    obj = dict(parent_obj)
    obj["status"] = status.model_dump(by_alias=True, exclude_none=True)
    return ctx.store.update_status(obj)
