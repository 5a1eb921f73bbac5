"""Sync documents as the store reports them changed."""

import logging
import queue
import threading

from kith.application.ports import WatchHandle
from kith.application.sync_engine import RelationshipSyncEngine

logger = logging.getLogger(__name__)


class SyncOnChange:
    """Queues refs from DocumentStore.watch and runs engine.sync on one worker thread.

    A ref already waiting in the queue is not queued again. The engine's own
    writes are reported too; the follow-up sync finds nothing to do.
    """

    def __init__(self, engine: RelationshipSyncEngine) -> None:
        self._engine = engine
        self._queue: queue.Queue[str | None] = queue.Queue()
        self._pending: set[str] = set()
        self._lock = threading.Lock()
        self._handle: WatchHandle | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="sync-on-change", daemon=True)
        self._thread.start()
        self._handle = self._engine.store.watch(self._engine.folder, self.notify)
        logger.info("Watching %s for changes", self._engine.folder or "all documents")

    def notify(self, ref: str) -> None:
        with self._lock:
            if ref in self._pending:
                return
            self._pending.add(ref)
        self._queue.put(ref)

    def join(self) -> None:
        """Block until every queued change has been synced."""
        self._queue.join()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.stop()
            self._handle = None
        if self._thread is not None:
            self._queue.put(None)
            self._thread.join(timeout=5)
            self._thread = None

    def _run(self) -> None:
        while True:
            ref = self._queue.get()
            try:
                if ref is None:
                    return
                with self._lock:
                    self._pending.discard(ref)
                result = self._engine.sync(ref)
                for error in result.errors:
                    logger.warning("Sync of %s: %s", ref, error)
                if result.changed:
                    logger.info("Synced %s after change", ref)
            finally:
                self._queue.task_done()
