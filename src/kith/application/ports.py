"""Application ports (interfaces). Implemented by infrastructure adapters."""

from collections.abc import Callable
from typing import Any, Protocol


class WatchHandle(Protocol):
    def stop(self) -> None:
        """Stop delivering change notifications."""
        ...


class DocumentStore(Protocol):
    """Reads and rewrites contact documents. Never asked to create or delete one."""

    def list_documents(self, folder: str) -> list[str]:
        """Return refs of all documents under folder, in a stable order."""
        ...

    def read_body(self, ref: str) -> str:
        """Return the body text (without the metadata block)."""
        ...

    def write_body(self, ref: str, text: str) -> bool:
        """Replace the body text. Returns True on success."""
        ...

    def read_metadata(self, ref: str) -> dict[str, Any]:
        """Return the flat metadata block; an empty dict when there is none."""
        ...

    def write_metadata(self, ref: str, metadata: dict[str, Any]) -> bool:
        """Replace the whole metadata block. Returns True on success."""
        ...

    def watch(self, folder: str, on_change: Callable[[str], None]) -> WatchHandle:
        """Call on_change(ref) whenever a document under folder changes."""
        ...


class VCardSink(Protocol):
    """Destination for exported vCard records, keyed by UID."""

    def read_revision(self, uid: str) -> str | None:
        """Return the REV of the stored record for uid, or None if there is none."""
        ...

    def write(self, uid: str, properties: list) -> None:
        """Store the record for uid (a list of VCardProperty)."""
        ...
