from __future__ import annotations

from threading import Event, Thread
from typing import Any

from . import db
from .alerts import send_failure_alert
from .context import ControllerContext
from .errors import InvalidResourceError, StoreError
from .kinds import MONGODB, ObjectKey
from .ownership import controller_owner_key
from .reconciler import Reconciler
from .runtime import RuntimeState, WorkQueue
from .settings import settings


class Manager:
    """Feeds reconcile keys to worker threads and retries failures.

    The reconciler never retries on its own: a failed pass is counted and
    the key goes back on the queue after an exponential backoff.
    """

    def __init__(
        self,
        ctx: ControllerContext,
        reconciler: Reconciler | None = None,
        runtime: RuntimeState | None = None,
        queue: WorkQueue | None = None,
        workers: int | None = None,
        resync_interval_s: int | None = None,
        namespace: str | None = None,
    ):
        self.ctx = ctx
        self.reconciler = reconciler or Reconciler(ctx)
        self.runtime = runtime or RuntimeState()
        self.queue = queue or WorkQueue()
        self.workers = max(1, int(workers if workers is not None else settings.workers))
        self.resync_interval_s = max(1, int(resync_interval_s if resync_interval_s is not None else settings.resync_interval_s))
        self.namespace = settings.namespace if namespace is None else namespace
        self._stop = Event()
        self._threads: list[Thread] = []

    def start(self) -> None:
        if any(t.is_alive() for t in self._threads):
            return
        self._stop.clear()
        self.queue.reopen()
        db.log_event("INFO", f"Manager started with {self.workers} worker(s)")
        self.resync()
        self._threads = [
            Thread(target=self._worker, name=f"mdbr-worker-{i}", daemon=True) for i in range(self.workers)
        ]
        self._threads.append(Thread(target=self._resync_loop, name="mdbr-resync", daemon=True))
        for t in self._threads:
            t.start()

    def stop(self, timeout_s: float = 5.0) -> None:
        self._stop.set()
        self.queue.shutdown()
        for t in self._threads:
            t.join(timeout_s)
        db.log_event("INFO", "Manager stopped")

    def enqueue(self, key: ObjectKey) -> None:
        self.queue.add(key)

    def enqueue_for_object(self, obj: dict[str, Any]) -> ObjectKey | None:
        """Route a changed object to the parent key it belongs to."""
        meta = obj.get("metadata") or {}
        if obj.get("kind") == MONGODB.kind and obj.get("apiVersion") == MONGODB.api_version:
            key = ObjectKey(meta.get("namespace", ""), meta.get("name", ""))
        else:
            owner = controller_owner_key(obj, MONGODB)
            if owner is None:
                return None
            key = ObjectKey(*owner)
        self.enqueue(key)
        return key

    def resync(self) -> int:
        """Enqueue every parent currently in the store."""
        try:
            parents = self.ctx.store.list(MONGODB, self.namespace or None)
        except StoreError as e:
            db.log_event("ERROR", f"Resync failed: {e}")
            return 0
        for obj in parents:
            self.enqueue_for_object(obj)
        return len(parents)

    def _worker(self) -> None:
        while not self._stop.is_set():
            self.process_next(timeout=1.0)

    def _resync_loop(self) -> None:
        while not self._stop.wait(self.resync_interval_s):
            self.resync()

    def process_next(self, timeout: float | None = None) -> bool:
        """Run one pass for the next ready key. False if none was ready."""
        key = self.queue.get(timeout=timeout)
        if key is None:
            return False
        try:
            self._reconcile(key)
        finally:
            self.queue.done(key)
        return True

    def _reconcile(self, key: ObjectKey) -> None:
        try:
            self.reconciler.reconcile(key)
        except InvalidResourceError as e:
            # Retrying cannot help; the next edit of the parent re-enqueues it.
            self.runtime.mark_result(key, False, str(e))
            db.log_event("ERROR", str(e), namespace=key.namespace, name=key.name)
            return
        except Exception as e:
            self._handle_failure(key, e)
            return

        prev_ok, _ = self.runtime.mark_result(key, True)
        if prev_ok is False:
            db.log_event("INFO", "Reconcile recovered", namespace=key.namespace, name=key.name)

    def _handle_failure(self, key: ObjectKey, e: Exception) -> None:
        error = f"{type(e).__name__}: {e}"
        _, fail_count = self.runtime.mark_result(key, False, error)
        delay = self.runtime.backoff_for(fail_count)
        db.log_event(
            "ERROR",
            f"Reconcile failed ({fail_count}x), retrying in {delay:.1f}s: {error}",
            namespace=key.namespace,
            name=key.name,
        )
        if fail_count == settings.fail_alert_threshold:
            send_failure_alert(key, fail_count, error)
        self.queue.add_after(key, delay)
