"""
Ad Monitor API — FastAPI endpoints.

Exposes the monitor's functionality via a REST API for:
- Intercepted request ingestion
- The task-tagged message protocol used by the UI panel
- Entity state inspection
- Reconciler control
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, List, Optional

from fastapi import Body, FastAPI, HTTPException
from pydantic import BaseModel

from ad_monitor.actions.gateway import ActionGateway, EntityHost
from ad_monitor.actions.host import SimulatedHost
from ad_monitor.ingestion.ingestor import RequestIngestor
from ad_monitor.models.events import RequestRecord
from ad_monitor.models.reconciler import MonitorConfig, ReconcileResult
from ad_monitor.reconciler.loop import Reconciler
from ad_monitor.reconciler.messages import MessageHandler
from ad_monitor.state_store.storage import KeyValueStorage, SQLiteStorage
from ad_monitor.state_store.store import EntityStateStore


# --- Request/Response Models ---

class IngestResponse(BaseModel):
    handled: bool
    result: Optional[ReconcileResult] = None


# --- Application Factory ---

def create_app(
    storage: Optional[KeyValueStorage] = None,
    host: Optional[EntityHost] = None,
    config: Optional[MonitorConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    cfg = config or MonitorConfig()
    kv = storage or SQLiteStorage()
    store = EntityStateStore(kv)
    gateway = ActionGateway(
        host or SimulatedHost(auto_open=True),
        timeout_seconds=cfg.action_timeout_seconds,
    )
    reconciler = Reconciler(store=store, gateway=gateway, config=cfg)
    ingestor = RequestIngestor(reconciler)
    messages = MessageHandler(reconciler)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await store.initialize()
        stop_event = asyncio.Event()
        heartbeat = None
        if reconciler.config.heartbeat_enabled:
            heartbeat = asyncio.create_task(reconciler.run_async(stop_event))
        try:
            yield
        finally:
            stop_event.set()
            if heartbeat is not None:
                await heartbeat

    app = FastAPI(
        title="Ad Monitor API",
        description="Ad-lifecycle classification and per-entity reconciliation",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store components on app state for access in tests and hosts
    app.state.store = store
    app.state.gateway = gateway
    app.state.reconciler = reconciler
    app.state.ingestor = ingestor

    # === INGESTION ===

    @app.post("/requests", response_model=IngestResponse)
    async def ingest_request(record: RequestRecord):
        """Feed one intercepted request to the monitor."""
        result = await ingestor.ingest(record)
        return IngestResponse(handled=result is not None, result=result)

    # === MESSAGE PROTOCOL ===

    @app.post("/messages")
    async def handle_message(message: Any = Body(...)):
        """Task-tagged request from the UI panel."""
        return await messages.handle(message)

    # === ENTITY STATE ===

    @app.get("/entities/{entity_id}")
    async def get_entity(entity_id: str):
        """Get a specific entity's state."""
        if not store.is_tracked(entity_id):
            raise HTTPException(404, "Entity not tracked")
        state = await store.get(entity_id)
        return {**state.model_dump(mode="json"), "phase": state.phase.value}

    @app.get("/status")
    async def status():
        """Readiness and global settings."""
        return {
            "ready": store.ready,
            "debug_mode": store.debug_mode,
            "tracked_entities": len(store.tracked_entities()),
            "playing_ads": len(store.entities_playing_ads()),
            "heartbeat": reconciler.status,
        }

    # === RECONCILER ===

    @app.post("/reconciler/sweep", response_model=List[ReconcileResult])
    async def sweep():
        """Force a desync sweep over every entity believed to be playing ads."""
        return await reconciler.sweep_once()

    @app.get("/reconciler/config")
    async def get_reconciler_config():
        """Current reconciler configuration."""
        return reconciler.config.model_dump()

    @app.put("/reconciler/config")
    async def update_reconciler_config(new_config: MonitorConfig):
        """Update reconciler configuration."""
        reconciler.config = new_config
        gateway.timeout_seconds = new_config.action_timeout_seconds
        return new_config.model_dump()

    return app


# Default application instance
app = create_app()
