"""
FastAPI backend: contact listing, per-document sync and full reconciliation.
Run with uvicorn: uvicorn api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager
from enum import Enum

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from kith.application import SyncOnChange
from kith.bootstrap import Pipeline, build_pipeline
from kith.config import load_settings
from kith.domain import ContactDocument

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)


def get_pipeline(app: FastAPI) -> Pipeline:
    if getattr(app.state, "pipeline", None) is None:
        settings = load_settings()
        logging.getLogger().setLevel(settings.log_level)
        app.state.pipeline = build_pipeline(settings)
        app.state.max_iterations = settings.max_iterations
        app.state.watch = settings.watch
    return app.state.pipeline


@asynccontextmanager
async def lifespan(app: FastAPI):
    pipeline = get_pipeline(app)
    logger.info("Serving contacts from %s", getattr(pipeline.store, "root", "memory"))
    watcher = None
    if getattr(app.state, "watch", False):
        watcher = SyncOnChange(pipeline.engine)
        watcher.start()
    app.state.watcher = watcher
    yield
    if watcher is not None:
        watcher.stop()
        app.state.watcher = None


app = FastAPI(title="Kith API", lifespan=lifespan)


# --- REST: health ---


@app.get("/health")
def health():
    return {"status": "ok"}


# --- REST: contacts ---


class RelationshipItem(BaseModel):
    type: str
    target: str


class ContactListItem(BaseModel):
    ref: str
    name: str
    uid: str | None = None
    gender: str | None = None
    rev: str | None = None
    relationships: list[RelationshipItem] = []


class PendingUpdateItem(BaseModel):
    ref: str
    field: str
    value: str
    reason: str = ""


class SyncResponse(BaseModel):
    success: bool
    changed: bool
    errors: list[str]
    pending_updates: list[PendingUpdateItem]


class ChangeItem(BaseModel):
    curator: str
    phase: str
    ref: str
    message: str


class ReconcileResponse(BaseModel):
    iterations: int
    converged: bool
    hit_iteration_cap: bool
    changes: list[ChangeItem]
    write_back_changes: list[ChangeItem]
    errors: list[str]


class SyncDirection(str, Enum):
    LIST = "list"
    METADATA = "metadata"
    BOTH = "both"


@app.get("/contacts")
def list_contacts(request: Request) -> list[ContactListItem]:
    pipeline = get_pipeline(request.app)
    items = []
    for ref in pipeline.store.list_documents(pipeline.folder):
        doc = ContactDocument.load(pipeline.store, ref)
        items.append(
            ContactListItem(
                ref=ref,
                name=doc.name,
                uid=doc.uid,
                gender=doc.gender.value if doc.gender else None,
                rev=doc.rev,
                relationships=[
                    RelationshipItem(type=e.type, target=e.target.encode())
                    for e in doc.relationships
                ],
            )
        )
    return items


@app.post("/contacts/{ref:path}/sync")
def sync_contact(
    ref: str,
    request: Request,
    direction: SyncDirection = SyncDirection.BOTH,
) -> SyncResponse:
    pipeline = get_pipeline(request.app)
    if ref not in pipeline.store.list_documents(pipeline.folder):
        raise HTTPException(status_code=404, detail=f"No contact {ref!r}")
    engine = pipeline.engine
    if direction is SyncDirection.LIST:
        result = engine.list_to_metadata(ref)
        for update in result.pending_updates:
            engine.apply_pending_update(update)
    elif direction is SyncDirection.METADATA:
        result = engine.metadata_to_list(ref)
    else:
        result = engine.sync(ref)
    return SyncResponse(
        success=result.success,
        changed=result.changed,
        errors=result.errors,
        pending_updates=[
            PendingUpdateItem(ref=u.ref, field=u.field, value=u.value, reason=u.reason)
            for u in result.pending_updates
        ],
    )


@app.post("/reconcile")
def reconcile(
    request: Request,
    max_iterations: int | None = Query(None, ge=1, le=100),
) -> ReconcileResponse:
    pipeline = get_pipeline(request.app)
    limit = max_iterations or getattr(request.app.state, "max_iterations", None) or 10
    report = pipeline.driver.reconcile_all(max_iterations=limit)

    def changes(records):
        return [
            ChangeItem(curator=r.curator, phase=r.phase, ref=r.ref, message=r.message)
            for r in records
        ]

    return ReconcileResponse(
        iterations=report.iterations,
        converged=report.converged,
        hit_iteration_cap=report.hit_iteration_cap,
        changes=changes(report.changes),
        write_back_changes=changes(report.write_back_changes),
        errors=report.errors,
    )


# --- REST: curators ---


class CuratorItem(BaseModel):
    name: str
    phase: str
    setting_name: str
    description: str
    enabled: bool


@app.get("/curators")
def list_curators(request: Request) -> list[CuratorItem]:
    pipeline = get_pipeline(request.app)
    return [
        CuratorItem(
            name=s.name,
            phase=s.phase,
            setting_name=s.setting_name,
            description=s.description,
            enabled=s.enabled,
        )
        for s in pipeline.registry.settings()
    ]
