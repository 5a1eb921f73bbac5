"""In-memory implementation of DocumentStore (no filesystem)."""

import copy
import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class _Subscription:
    def __init__(self, store: "InMemoryDocumentStore", folder: str, on_change) -> None:
        self._store = store
        self.folder = folder
        self.on_change = on_change

    def stop(self) -> None:
        self._store._unsubscribe(self)


class InMemoryDocumentStore:
    """Documents keyed by ref ("folder/Name.md"). Order preserved by insertion.

    Reads return copies so callers cannot mutate stored metadata. Watchers
    are called synchronously after every write.
    """

    def __init__(self) -> None:
        self._metadata: dict[str, dict[str, Any]] = {}
        self._bodies: dict[str, str] = {}
        self._subscriptions: list[_Subscription] = []
        self._lock = threading.RLock()
        self.writes = 0

    def add(self, ref: str, metadata: dict[str, Any] | None = None, body: str = "") -> None:
        """Seed a document. Not part of the store protocol; used by tests and fixtures."""
        with self._lock:
            self._metadata[ref] = copy.deepcopy(metadata or {})
            self._bodies[ref] = body

    def list_documents(self, folder: str) -> list[str]:
        prefix = folder.rstrip("/") + "/" if folder else ""
        with self._lock:
            return [ref for ref in self._metadata if ref.startswith(prefix)]

    def read_body(self, ref: str) -> str:
        with self._lock:
            self._require(ref)
            return self._bodies[ref]

    def write_body(self, ref: str, text: str) -> bool:
        with self._lock:
            self._require(ref)
            self._bodies[ref] = text
            self.writes += 1
        self._notify(ref)
        return True

    def read_metadata(self, ref: str) -> dict[str, Any]:
        with self._lock:
            self._require(ref)
            return copy.deepcopy(self._metadata[ref])

    def write_metadata(self, ref: str, metadata: dict[str, Any]) -> bool:
        with self._lock:
            self._require(ref)
            self._metadata[ref] = copy.deepcopy(metadata)
            self.writes += 1
        self._notify(ref)
        return True

    def watch(self, folder: str, on_change: Callable[[str], None]) -> _Subscription:
        subscription = _Subscription(self, folder, on_change)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _unsubscribe(self, subscription: _Subscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def _notify(self, ref: str) -> None:
        with self._lock:
            subscriptions = list(self._subscriptions)
        for sub in subscriptions:
            if not sub.folder or ref.startswith(sub.folder.rstrip("/") + "/"):
                try:
                    sub.on_change(ref)
                except Exception:
                    logger.exception("Watcher failed for %s", ref)

    def _require(self, ref: str) -> None:
        if ref not in self._metadata:
            raise KeyError(f"No document {ref!r}")
