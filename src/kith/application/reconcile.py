"""Convergence driver: repeat the curator phases until no document's revision changes."""

import logging
from collections.abc import Iterable
from contextlib import nullcontext

from kith.application.curators import PHASE_ORDER, CuratorRegistry
from kith.application.dto import ChangeRecord, ReconcileReport
from kith.application.ports import DocumentStore
from kith.application.sync_engine import RelationshipSyncEngine
from kith.domain import ContactDocument
from kith.domain.entities import REV_KEY

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 10


class ConvergenceDriver:
    """Runs every phase over a working set, narrowing it to the documents that changed.

    The write-back rule is kept out of the loop and run once over the whole
    original set after it ends, if it was enabled.
    """

    def __init__(
        self,
        store: DocumentStore,
        folder: str,
        registry: CuratorRegistry,
        engine: RelationshipSyncEngine,
        write_back: str | None = "vcard_write_back",
    ) -> None:
        self._store = store
        self._folder = folder
        self._registry = registry
        self._engine = engine
        self._write_back = write_back if write_back in registry.names() else None

    def reconcile_all(self, max_iterations: int = DEFAULT_MAX_ITERATIONS) -> ReconcileReport:
        return self.reconcile(self._store.list_documents(self._folder), max_iterations)

    def reconcile(
        self, refs: Iterable[str], max_iterations: int = DEFAULT_MAX_ITERATIONS
    ) -> ReconcileReport:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        original = list(refs)
        report = ReconcileReport()

        guard = (
            self._registry.suspended(self._write_back) if self._write_back else nullcontext(False)
        )
        with guard as write_back_enabled:
            working = original
            while working:
                if report.iterations >= max_iterations:
                    report.hit_iteration_cap = True
                    logger.warning(
                        "Reconciliation stopped after %d iterations with %d document(s) still changing",
                        max_iterations,
                        len(working),
                    )
                    break
                report.iterations += 1
                snapshot = self._revisions()
                for phase in PHASE_ORDER:
                    records = self._registry.run_phase(self._load(working, report), phase)
                    self._apply_pending(records)
                    report.changes.extend(records)
                current = self._revisions()
                working = [ref for ref, rev in current.items() if snapshot.get(ref) != rev]
                report.changed_per_iteration.append(len(working))
                logger.info(
                    "Iteration %d: %d document(s) changed", report.iterations, len(working)
                )
            report.converged = not working

        if write_back_enabled:
            report.write_back_changes = self._registry.run_curator(
                self._write_back, self._load(original, report)
            )
        return report

    def _apply_pending(self, records: list[ChangeRecord]) -> None:
        for record in records:
            for update in record.pending_updates:
                if not self._engine.apply_pending_update(update):
                    logger.debug("Pending update not applied: %s", update)

    def _revisions(self) -> dict[str, str | None]:
        revisions: dict[str, str | None] = {}
        for ref in self._store.list_documents(self._folder):
            try:
                value = (self._store.read_metadata(ref) or {}).get(REV_KEY)
            except Exception as exc:
                logger.warning("Could not read revision of %s: %s", ref, exc)
                value = None
            revisions[ref] = None if value is None else str(value)
        return revisions

    def _load(self, refs: Iterable[str], report: ReconcileReport) -> list[ContactDocument]:
        documents = []
        for ref in refs:
            try:
                documents.append(ContactDocument.load(self._store, ref))
            except Exception as exc:
                logger.exception("Could not load %s", ref)
                report.errors.append(f"Could not load {ref}: {exc}")
        return documents
