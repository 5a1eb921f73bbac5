"""Two-way sync between a contact's Related list (body) and its RELATED metadata keys."""

import logging
import threading
from collections.abc import Callable, Iterable
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from kith.application.directory import ContactDirectory
from kith.application.dto import PendingUpdate, SyncResult
from kith.application.ports import DocumentStore
from kith.domain import (
    ContactDocument,
    Gender,
    GenderResolver,
    RelationshipEntry,
    RelationshipSet,
    RelationshipTarget,
    RevisionClock,
    parse_gender,
    parse_related_items,
    write_related_section,
)
from kith.domain.body import format_item, has_related_section
from kith.domain.entities import GENDER_KEY, REV_KEY
from kith.domain.relationships import (
    TARGET_NAME,
    normalize_type,
    relationship_fields,
    replace_relationship_fields,
)

logger = logging.getLogger(__name__)

PairKey = tuple[str, tuple[str, str]]

SYNCED_KEY = "X-KITH-SYNCED"
DELETED_KEY = "X-KITH-DELETED"


def encode_pair(pair: PairKey) -> str:
    rel_type, (kind, value) = pair
    return f"{rel_type}={kind}:{value}"


def decode_pair(text: Any) -> PairKey | None:
    rel_type, sep, rest = str(text).partition("=")
    kind, colon, value = rest.partition(":")
    if not sep or not colon or not rel_type.strip() or not value.strip():
        return None
    if kind not in ("uid", TARGET_NAME):
        return None
    return rel_type.strip(), (kind, value.strip())


@dataclass(frozen=True)
class SyncLedger:
    """Which (type, target identity) pairs a document's body listed, and which it dropped.

    A pair that was listed on the previous list-to-metadata pass and is gone
    now was deleted by the user. Deleted pairs are tombstoned so reciprocal
    inference does not bring them back; listing a pair again clears its
    tombstone. The ledger is stored in the document's own metadata so that
    deletions are still known to the next process.
    """

    synced: frozenset[PairKey] = frozenset()
    tombstones: frozenset[PairKey] = frozenset()

    @classmethod
    def from_metadata(
        cls,
        metadata: dict[str, Any],
        directory: ContactDirectory | None = None,
    ) -> "SyncLedger":
        """Read the ledger keys. With a directory, name pairs are re-keyed to UIDs where known."""

        def pairs(key: str) -> frozenset[PairKey]:
            raw = metadata.get(key) or []
            if not isinstance(raw, (list, tuple)):
                raw = [raw]
            out = set()
            for text in raw:
                pair = decode_pair(text)
                if pair is None:
                    logger.debug("Skipping unreadable ledger entry %r", text)
                    continue
                rel_type, (kind, value) = pair
                if directory is not None and kind == TARGET_NAME:
                    pair = (rel_type, directory.identity(RelationshipTarget.for_name(value)))
                out.add(pair)
            return frozenset(out)

        return cls(synced=pairs(SYNCED_KEY), tombstones=pairs(DELETED_KEY))

    def is_tombstoned(self, pair: PairKey) -> bool:
        return pair in self.tombstones

    def after_listing(self, listed: Iterable[PairKey]) -> tuple["SyncLedger", frozenset[PairKey]]:
        """The ledger once the body lists exactly listed, and the pairs it dropped."""
        listed = frozenset(listed)
        deleted = self.synced - listed
        return SyncLedger(synced=listed, tombstones=(self.tombstones | deleted) - listed), deleted

    def write_to(self, metadata: dict[str, Any]) -> None:
        for key, pairs in ((SYNCED_KEY, self.synced), (DELETED_KEY, self.tombstones)):
            if pairs:
                metadata[key] = sorted(encode_pair(p) for p in pairs)
            else:
                metadata.pop(key, None)


class RelationshipSyncEngine:
    """Reconciles one document at a time, in either direction.

    Each direction reads, merges and writes a document while holding that
    document's lock. Effects on other documents (inferred gender) are returned
    as PendingUpdate values and applied with apply_pending_update.
    Public entry points return a SyncResult and do not raise.
    """

    def __init__(
        self,
        store: DocumentStore,
        folder: str,
        resolver: GenderResolver | None = None,
        clock: RevisionClock | None = None,
    ) -> None:
        self._store = store
        self._folder = folder
        self.resolver = resolver or GenderResolver()
        self.clock = clock or RevisionClock()
        self._locks: dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @property
    def store(self) -> DocumentStore:
        return self._store

    @property
    def folder(self) -> str:
        return self._folder

    @contextmanager
    def document_lock(self, ref: str):
        with self._locks_guard:
            lock = self._locks.setdefault(ref, threading.RLock())
        with lock:
            yield

    def directory(self) -> ContactDirectory:
        return ContactDirectory.load(self._store, self._folder)

    # --- list -> metadata ---

    def list_to_metadata(self, ref: str) -> SyncResult:
        """Merge the body's Related list into the RELATED metadata keys.

        Additive except for explicit deletions (pairs the body listed last time
        and no longer does). Unresolved names stay as name targets.
        """
        errors: list[str] = []
        try:
            with self.document_lock(ref):
                directory = self.directory()
                doc = ContactDocument.load(self._store, ref)
                body_pairs, pending = self._read_body_pairs(doc, directory, errors)

                merged = RelationshipSet(doc.relationships)
                existing: dict[PairKey, RelationshipEntry] = {}
                for entry in doc.relationships:
                    key = (entry.type, directory.identity(entry.target))
                    if key in existing:
                        merged.remove(entry.type, entry.target)
                    else:
                        existing[key] = entry

                ledger = SyncLedger.from_metadata(doc.metadata, directory)
                ledger, deleted = ledger.after_listing(body_pairs)
                for key in deleted:
                    if key in existing:
                        merged.remove(existing[key].type, existing[key].target)
                        logger.info("Removed deleted relationship %s from %s", existing[key], ref)

                for key, entry in body_pairs.items():
                    old = existing.get(key)
                    if old is None:
                        merged.add(entry.type, entry.target)
                    elif old.target.encode() != entry.target.encode():
                        merged.replace(old, entry)

                changed = self._write_relationships(doc, merged, ledger)
            return SyncResult(success=True, errors=errors, changed=changed, pending_updates=pending)
        except Exception as exc:
            logger.exception("List to metadata sync failed for %s", ref)
            errors.append(f"Failed to sync Related list to metadata for {ref}: {exc}")
            return SyncResult(success=False, errors=errors)

    def _read_body_pairs(
        self,
        doc: ContactDocument,
        directory: ContactDirectory,
        errors: list[str],
    ) -> tuple[dict[PairKey, RelationshipEntry], list[PendingUpdate]]:
        pairs: dict[PairKey, RelationshipEntry] = {}
        pending: list[PendingUpdate] = []
        proposed: set[str] = set()
        for item in parse_related_items(doc.body):
            try:
                rel_type = self.resolver.canonicalize(item.label)
                target_doc = directory.by_name(item.name)
                if target_doc is not None and target_doc.ref == doc.ref:
                    errors.append(f"Ignoring relationship of {doc.name} to itself: {item.label}")
                    continue
                if target_doc is not None:
                    target = directory.target_for(target_doc)
                else:
                    target = RelationshipTarget.for_name(item.name)
                key = (rel_type, directory.identity(target))
                if key not in pairs:
                    pairs[key] = RelationshipEntry(rel_type, target)

                # Duplicates still count: "parent" then "mother" for one contact implies F.
                inferred = self.resolver.infer_gender(item.label)
                if (
                    inferred is not None
                    and target_doc is not None
                    and target_doc.gender is None
                    and target_doc.ref not in proposed
                ):
                    proposed.add(target_doc.ref)
                    pending.append(
                        PendingUpdate(
                            ref=target_doc.ref,
                            field=GENDER_KEY,
                            value=inferred.value,
                            reason=f'"{item.label}" in {doc.name}',
                        )
                    )
            except Exception as exc:
                errors.append(
                    f"Error processing relationship {item.label} -> {item.name}: {exc}"
                )
        return pairs, pending

    def _write_relationships(
        self,
        doc: ContactDocument,
        rset: RelationshipSet,
        ledger: SyncLedger,
    ) -> bool:
        """Write relationships and ledger. Only a relationship change bumps REV and counts as changed."""
        old_fields = list(relationship_fields(doc.metadata).items())
        new_fields = list(rset.to_metadata_fields().items())
        if old_fields != new_fields:
            metadata = replace_relationship_fields(doc.metadata, rset)
        else:
            metadata = dict(doc.metadata)
        ledger.write_to(metadata)
        if old_fields == new_fields:
            if metadata != doc.metadata:
                self._store.write_metadata(doc.ref, metadata)
            return False
        metadata[REV_KEY] = self.clock.next(doc.rev)
        self._store.write_metadata(doc.ref, metadata)
        logger.info("Wrote %d relationship(s) to metadata of %s", len(new_fields), doc.ref)
        return True

    # --- metadata -> list ---

    def metadata_to_list(self, ref: str) -> SyncResult:
        """Render the RELATED metadata keys into the body's Related list.

        Existing body items keep their position and wording; metadata entries
        missing from the body are appended with a term matching the target's
        gender. Neutral terms are upgraded once the target's gender is known.
        """
        errors: list[str] = []
        try:
            with self.document_lock(ref):
                directory = self.directory()
                doc = ContactDocument.load(self._store, ref)
                rset = doc.relationships
                items = parse_related_items(doc.body)
                if not rset and not items and not has_related_section(doc.body):
                    return SyncResult(success=True)

                lines: list[str] = []
                seen: set[PairKey] = set()
                neutral_at: dict[PairKey, int] = {}
                for item in items:
                    rel_type = self.resolver.canonicalize(item.label)
                    target_doc = directory.by_name(item.name)
                    if target_doc is not None and target_doc.uid:
                        key = (rel_type, ("uid", target_doc.uid))
                    else:
                        key = (rel_type, RelationshipTarget.for_name(item.name).match_key())
                    neutral = self._is_neutral(item.label, rel_type)
                    if key in seen:
                        # A gendered duplicate replaces a neutral first mention.
                        if key in neutral_at and not neutral:
                            lines[neutral_at.pop(key)] = format_item(item.label, item.name)
                        continue
                    seen.add(key)
                    label = item.label
                    if target_doc is not None and neutral:
                        label = self._display_term(rel_type, target_doc.gender, label)
                    if self._is_neutral(label, rel_type):
                        neutral_at[key] = len(lines)
                    lines.append(format_item(label, item.name))

                for entry in rset:
                    key = (entry.type, directory.identity(entry.target))
                    if key in seen:
                        continue
                    seen.add(key)
                    target_doc = directory.resolve(entry.target)
                    if target_doc is not None:
                        name, gender = target_doc.name, target_doc.gender
                    else:
                        name, gender = entry.target.value, None
                        if not entry.target.is_name:
                            errors.append(f"Could not resolve contact name for UID: {entry.target.value}")
                    lines.append(format_item(self.resolver.term_for(entry.type, gender), name))

                if not lines and not has_related_section(doc.body):
                    return SyncResult(success=True, errors=errors)
                new_body = write_related_section(doc.body, lines)
                if new_body == doc.body:
                    return SyncResult(success=True, errors=errors)

                self._store.write_body(ref, new_body)
                metadata = dict(doc.metadata)
                metadata[REV_KEY] = self.clock.next(doc.rev)
                self._store.write_metadata(ref, metadata)
                logger.info("Rendered %d Related item(s) into body of %s", len(lines), ref)
            return SyncResult(success=True, errors=errors, changed=True)
        except Exception as exc:
            logger.exception("Metadata to list sync failed for %s", ref)
            errors.append(f"Failed to sync metadata to Related list for {ref}: {exc}")
            return SyncResult(success=False, errors=errors)

    def _is_neutral(self, label: str, rel_type: str) -> bool:
        return normalize_type(self.resolver.term_for(rel_type, None)) == normalize_type(label)

    def _display_term(self, rel_type: str, gender: Gender | None, fallback: str) -> str:
        if gender in (Gender.MALE, Gender.FEMALE):
            return self.resolver.term_for(rel_type, gender)
        return fallback

    # --- both directions ---

    def sync(self, ref: str) -> SyncResult:
        """List to metadata, then pending updates, then metadata to list."""
        first = self.list_to_metadata(ref)
        for update in first.pending_updates:
            self.apply_pending_update(update)
        second = self.metadata_to_list(ref)
        return SyncResult(
            success=first.success and second.success,
            errors=[*first.errors, *second.errors],
            changed=first.changed or second.changed,
            pending_updates=first.pending_updates,
        )

    # --- shared write path ---

    def update_metadata(self, ref: str, mutate: Callable[[dict[str, Any]], bool]) -> bool:
        """Locked read-modify-write of one document's metadata.

        mutate edits the dict in place and returns True if it changed anything;
        only then is the document written, with a new revision stamp.
        """
        with self.document_lock(ref):
            metadata = dict(self._store.read_metadata(ref) or {})
            previous_rev = metadata.get(REV_KEY)
            if not mutate(metadata):
                return False
            metadata[REV_KEY] = self.clock.next(str(previous_rev) if previous_rev else None)
            self._store.write_metadata(ref, metadata)
            return True

    def rewrite_body(self, ref: str, rewrite: Callable[[str, dict[str, Any]], str]) -> bool:
        """Locked read-modify-write of one document's body; a new body bumps REV."""
        with self.document_lock(ref):
            doc = ContactDocument.load(self._store, ref)
            new_body = rewrite(doc.body, dict(doc.metadata))
            if new_body == doc.body:
                return False
            self._store.write_body(ref, new_body)
            metadata = dict(doc.metadata)
            metadata[REV_KEY] = self.clock.next(doc.rev)
            self._store.write_metadata(ref, metadata)
            return True

    def apply_pending_update(self, update: PendingUpdate) -> bool:
        """Apply a queued cross-document write. A known gender is never overwritten."""

        def mutate(metadata: dict[str, Any]) -> bool:
            if update.field == GENDER_KEY and parse_gender(metadata.get(GENDER_KEY)) is not None:
                return False
            if metadata.get(update.field) == update.value:
                return False
            metadata[update.field] = update.value
            return True

        try:
            applied = self.update_metadata(update.ref, mutate)
        except Exception:
            logger.exception("Could not apply %s=%s to %s", update.field, update.value, update.ref)
            return False
        if applied:
            logger.info(
                "Set %s=%s on %s (%s)", update.field, update.value, update.ref, update.reason
            )
        return applied
