from kith.application.curators import PHASE_ORDER, Curator, CuratorRegistry, Phase
from kith.application.directory import ContactDirectory
from kith.application.dto import (
    ChangeRecord,
    CuratorSetting,
    PendingUpdate,
    ReconcileReport,
    SyncResult,
)
from kith.application.ports import DocumentStore, VCardSink, WatchHandle
from kith.application.reconcile import ConvergenceDriver
from kith.application.sync_engine import RelationshipSyncEngine, SyncLedger
from kith.application.vcard import VCardProperty, vcard_properties
from kith.application.watcher import SyncOnChange

__all__ = [
    "PHASE_ORDER",
    "ChangeRecord",
    "ContactDirectory",
    "ConvergenceDriver",
    "Curator",
    "CuratorRegistry",
    "CuratorSetting",
    "DocumentStore",
    "PendingUpdate",
    "Phase",
    "ReconcileReport",
    "RelationshipSyncEngine",
    "SyncLedger",
    "SyncOnChange",
    "SyncResult",
    "VCardProperty",
    "VCardSink",
    "WatchHandle",
    "vcard_properties",
]
