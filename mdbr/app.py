from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool

from . import db
from .api_models import EnqueueResponse, KeyStatusModel
from .context import ControllerContext
from .kinds import ObjectKey
from .kube import KubeStore
from .manager import Manager


def create_app(manager: Manager | None = None, start_manager: bool = True) -> FastAPI:
    """Operator HTTP surface around a :class:`Manager`.

    With no manager given, one is built against the API server configured in
    the environment (``uvicorn --factory mdbr.app:create_app``).
    """
    if manager is None:
        manager = Manager(ControllerContext(store=KubeStore.from_config()))

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        db.init_db()
        if start_manager:
            # Both block: the initial list hits the API server, stop joins threads.
            await run_in_threadpool(manager.start)
        try:
            yield
        finally:
            if start_manager:
                await run_in_threadpool(manager.stop)

    app = FastAPI(title="MongoDB reconciler", lifespan=lifespan)
    app.state.manager = manager

    @app.get("/healthz")
    def healthz() -> dict[str, Any]:
        return {"status": "ok", "pending": len(manager.queue.pending())}

    @app.get("/events")
    def events(
        limit: int = Query(100, ge=1, le=1000),
        namespace: str | None = None,
        name: str | None = None,
    ) -> list[dict[str, Any]]:
        return db.latest_events(limit=limit, namespace=namespace, name=name)

    @app.get("/keys", response_model=list[KeyStatusModel])
    def keys() -> list[KeyStatusModel]:
        return [KeyStatusModel(**asdict(s)) for s in manager.runtime.list_statuses()]

    @app.get("/keys/{namespace}/{name}", response_model=KeyStatusModel)
    def key_status(namespace: str, name: str) -> KeyStatusModel:
        st = manager.runtime.get(ObjectKey(namespace, name))
        if st is None:
            raise HTTPException(status_code=404, detail=f"{namespace}/{name} has not been reconciled yet")
        return KeyStatusModel(**asdict(st))

    @app.post("/reconcile/{namespace}/{name}", response_model=EnqueueResponse, status_code=status.HTTP_202_ACCEPTED)
    def reconcile(namespace: str, name: str) -> EnqueueResponse:
        key = ObjectKey(namespace, name)
        manager.enqueue(key)
        return EnqueueResponse(key=str(key))

    @app.post("/resync", status_code=status.HTTP_202_ACCEPTED)
    def resync() -> dict[str, int]:
        return {"queued": manager.resync()}

    return app
