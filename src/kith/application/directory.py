"""Lookup of contact documents by UID or display name."""

import logging

from kith.application.ports import DocumentStore
from kith.domain import ContactDocument, RelationshipTarget
from kith.domain.entities import normalize_uid

logger = logging.getLogger(__name__)


class ContactDirectory:
    """Snapshot of the contact folder used to resolve relationship targets.

    Take a fresh one per pass: documents change between passes.
    """

    def __init__(self, documents: list[ContactDocument]) -> None:
        self._documents = list(documents)
        self._by_ref = {doc.ref: doc for doc in self._documents}
        self._by_uid: dict[str, ContactDocument] = {}
        for doc in self._documents:
            if doc.uid and doc.uid not in self._by_uid:
                self._by_uid[doc.uid] = doc

    @classmethod
    def load(cls, store: DocumentStore, folder: str) -> "ContactDirectory":
        documents = []
        for ref in store.list_documents(folder):
            try:
                documents.append(ContactDocument.load(store, ref))
            except Exception:
                logger.exception("Could not read contact %s", ref)
        return cls(documents)

    def documents(self) -> list[ContactDocument]:
        return list(self._documents)

    def get(self, ref: str) -> ContactDocument | None:
        return self._by_ref.get(ref)

    def by_uid(self, uid: str | None) -> ContactDocument | None:
        key = normalize_uid(uid)
        return self._by_uid.get(key) if key else None

    def by_name(self, name: str) -> ContactDocument | None:
        """Exact (trimmed, case-folded) match on display name, then on file stem."""
        for doc in self._documents:
            if doc.name.casefold() == (name or "").strip().casefold():
                return doc
        for doc in self._documents:
            if doc.matches_name(name):
                return doc
        return None

    def resolve(self, target: RelationshipTarget) -> ContactDocument | None:
        if target.is_name:
            return self.by_name(target.value)
        return self.by_uid(target.value)

    def identity(self, target: RelationshipTarget) -> tuple[str, str]:
        """Stable identity of a target: the resolved UID when possible, else the folded name."""
        doc = self.resolve(target)
        if doc is not None and doc.uid:
            return ("uid", doc.uid)
        return target.match_key()

    @staticmethod
    def target_for(doc: ContactDocument) -> RelationshipTarget:
        if doc.uid:
            return RelationshipTarget.for_uid(doc.uid)
        return RelationshipTarget.for_name(doc.name)
