from __future__ import annotations

from dataclasses import dataclass, field

from . import db
from .api_models import MongoDB, MongoDBStatus
from .children import CHILD_HANDLERS, ChildHandler
from .context import ControllerContext
from .converge import Outcome, converge_child
from .errors import NotFoundError
from .generate import with_defaults
from .kinds import MONGODB, ObjectKey
from .status import aggregate_status, write_status


@dataclass
class ReconcileResult:
    key: ObjectKey
    found: bool = True
    outcomes: dict[str, Outcome] = field(default_factory=dict)
    status: MongoDBStatus | None = None

    @property
    def writes(self) -> int:
        """Child creates/updates issued during the pass."""
        return sum(1 for o in self.outcomes.values() if o is not Outcome.UNCHANGED)


class Reconciler:
    """One reconcile pass per call: converge children, then publish status.

    Any failure aborts the pass and propagates; writes already made are kept
    and the next pass starts over from what the store holds.
    """

    def __init__(self, ctx: ControllerContext, handlers: tuple[ChildHandler, ...] = CHILD_HANDLERS):
        self.ctx = ctx
        self.handlers = handlers

    def reconcile(self, key: ObjectKey) -> ReconcileResult:
        try:
            parent_obj = self.ctx.store.get(MONGODB, key.namespace, key.name)
        except NotFoundError:
            # Children go with it through their owner references.
            db.log_event("INFO", "MongoDB no longer exists; nothing to do", namespace=key.namespace, name=key.name)
            return ReconcileResult(key, found=False)

        parent = with_defaults(MongoDB.from_object(parent_obj))

        result = ReconcileResult(key)
        for handler in self.handlers:
            outcome, _ = converge_child(self.ctx, parent, parent_obj, handler)
            result.outcomes[handler.kind.kind] = outcome

        status = aggregate_status(self.ctx, parent, self.handlers)
        write_status(self.ctx, parent_obj, status)
        db.log_event("INFO", "Status written", namespace=key.namespace, name=key.name)
        result.status = status
        if result.writes:
            db.log_event(
                "INFO",
                "Reconciled: " + ", ".join(f"{k} {o.value}" for k, o in result.outcomes.items()),
                namespace=key.namespace,
                name=key.name,
            )
        return result
