"""Built-in curator rules."""

import logging
import uuid
from collections.abc import Callable
from typing import Any

from kith.application.curators import Phase
from kith.application.dto import ChangeRecord
from kith.application.ports import VCardSink
from kith.application.sync_engine import RelationshipSyncEngine, SyncLedger
from kith.application.vcard import vcard_properties
from kith.domain import ContactDocument, RelationshipEntry, RelationshipSet, parse_key
from kith.domain.body import parse_contact_section, render_contact_lines, write_contact_section
from kith.domain.contact_fields import (
    ContactField,
    contact_field_keys,
    contact_fields_from_metadata,
    free_index,
    match_value,
)
from kith.domain.entities import UID_KEY, normalize_uid
from kith.domain.relationships import is_blank_value, replace_relationship_fields
from kith.domain.revision import is_newer

logger = logging.getLogger(__name__)


class _EngineCurator:
    name = ""
    phase = Phase.IMPROVEMENT
    setting_name = ""
    description = ""
    default_enabled = True

    def __init__(self, engine: RelationshipSyncEngine) -> None:
        self._engine = engine

    def _record(self, document: ContactDocument, message: str, pending=()) -> ChangeRecord:
        return ChangeRecord(
            curator=self.name,
            phase=self.phase.value,
            ref=document.ref,
            message=message,
            pending_updates=tuple(pending),
        )


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


class UidCurator(_EngineCurator):
    name = "uid"
    phase = Phase.IMMEDIATE
    setting_name = "uid_processor"
    description = "Generates a unique identifier (UID) for contacts that have none."

    def __init__(
        self,
        engine: RelationshipSyncEngine,
        new_uid: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        super().__init__(engine)
        self._new_uid = new_uid

    def process(self, document: ContactDocument) -> ChangeRecord | None:
        if document.uid:
            return None
        uid = self._new_uid()

        def mutate(metadata: dict[str, Any]) -> bool:
            if normalize_uid(metadata.get(UID_KEY)):
                return False
            metadata[UID_KEY] = uid
            return True

        if not self._engine.update_metadata(document.ref, mutate):
            return None
        return self._record(document, f"Generated UID {uid} for {document.name}")


class PhoneNormalizeCurator(_EngineCurator):
    name = "phone_normalize"
    phase = Phase.IMMEDIATE
    setting_name = "phone_normalize_processor"
    description = "Rewrites TEL fields to E.164 so phone numbers compare equal."

    def __init__(
        self,
        engine: RelationshipSyncEngine,
        normalize: Callable[[str], str | None],
    ) -> None:
        super().__init__(engine)
        self._normalize = normalize

    def process(self, document: ContactDocument) -> ChangeRecord | None:
        updated: list[str] = []

        def mutate(metadata: dict[str, Any]) -> bool:
            updated.clear()
            for key, value in metadata.items():
                if parse_key(key).key.upper() != "TEL" or is_blank_value(value):
                    continue
                if isinstance(value, (dict, list, tuple)):
                    continue
                normalized = self._normalize(str(value))
                if normalized and normalized != value:
                    metadata[key] = normalized
                    updated.append(key)
            return bool(updated)

        if not self._engine.update_metadata(document.ref, mutate):
            return None
        return self._record(
            document, f"Normalized {_plural(len(updated), 'phone number')} for {document.name}"
        )


class RelatedListCurator(_EngineCurator):
    name = "related_list"
    phase = Phase.IMPROVEMENT
    setting_name = "related_list_processor"
    description = "Syncs the Related section of the body into RELATED metadata fields."

    def process(self, document: ContactDocument) -> ChangeRecord | None:
        result = self._engine.list_to_metadata(document.ref)
        for error in result.errors:
            logger.warning("[%s] %s: %s", self.name, document.ref, error)
        if not result.success or not (result.changed or result.pending_updates):
            return None
        message = f"Synced Related list to metadata for {document.name}"
        if result.pending_updates:
            message += f"; inferred gender for {_plural(len(result.pending_updates), 'contact')}"
        return self._record(document, message, result.pending_updates)


class RelatedMetadataCurator(_EngineCurator):
    name = "related_metadata"
    phase = Phase.UPCOMING
    setting_name = "related_metadata_processor"
    description = "Renders RELATED metadata fields into the Related section of the body."

    def process(self, document: ContactDocument) -> ChangeRecord | None:
        result = self._engine.metadata_to_list(document.ref)
        for error in result.errors:
            logger.warning("[%s] %s: %s", self.name, document.ref, error)
        if not result.success or not result.changed:
            return None
        return self._record(document, f"Updated Related list of {document.name}")


class RelatedOtherCurator(_EngineCurator):
    name = "related_other"
    phase = Phase.IMPROVEMENT
    setting_name = "related_other_processor"
    description = (
        "Adds reciprocal relationships implied by other contacts' RELATED fields "
        "(if Jane lists John as parent, John gets Jane as child)."
    )

    def process(self, document: ContactDocument) -> ChangeRecord | None:
        engine = self._engine
        directory = engine.directory()
        this = directory.get(document.ref)
        if this is None:
            return None

        ledger = SyncLedger.from_metadata(this.metadata, directory)
        known = {
            (entry.type, directory.identity(entry.target)) for entry in this.relationships
        }
        additions: list[RelationshipEntry] = []
        for other in directory.documents():
            if other.ref == this.ref:
                continue
            for entry in other.relationships:
                target_doc = directory.resolve(entry.target)
                if target_doc is None or target_doc.ref != this.ref:
                    continue
                reciprocal = engine.resolver.reciprocal(entry.type)
                if reciprocal is None:
                    continue
                other_target = directory.target_for(other)
                key = (reciprocal, directory.identity(other_target))
                if key in known or ledger.is_tombstoned(key):
                    continue
                known.add(key)
                additions.append(RelationshipEntry(reciprocal, other_target))
                logger.info(
                    "Adding reciprocal relationship: %s -> %s -> %s",
                    this.name,
                    reciprocal,
                    other.name,
                )

        if not additions:
            return None

        def mutate(metadata: dict[str, Any]) -> bool:
            rset = RelationshipSet.from_metadata(metadata)
            added = [rset.add(e.type, e.target) for e in additions]
            if not any(added):
                return False
            updated = replace_relationship_fields(metadata, rset)
            metadata.clear()
            metadata.update(updated)
            return True

        if not engine.update_metadata(this.ref, mutate):
            return None
        return self._record(
            document,
            f"Added {_plural(len(additions), 'missing reciprocal relationship')} to {this.name}",
        )


class NamespaceUpgradeCurator(_EngineCurator):
    name = "namespace_upgrade"
    phase = Phase.IMPROVEMENT
    setting_name = "namespace_upgrade_processor"
    description = "Rewrites name-based RELATED values to UID references once the contact is known."

    def process(self, document: ContactDocument) -> ChangeRecord | None:
        directory = self._engine.directory()
        upgrades = 0

        def mutate(metadata: dict[str, Any]) -> bool:
            nonlocal upgrades
            upgrades = 0
            rset = RelationshipSet.from_metadata(metadata)
            for entry in rset.entries():
                if not entry.target.is_name:
                    continue
                target_doc = directory.resolve(entry.target)
                if target_doc is None or target_doc.ref == document.ref or not target_doc.uid:
                    continue
                rset.replace(entry, RelationshipEntry(entry.type, directory.target_for(target_doc)))
                upgrades += 1
            if not upgrades:
                return False
            updated = replace_relationship_fields(metadata, rset)
            metadata.clear()
            metadata.update(updated)
            return True

        if not self._engine.update_metadata(document.ref, mutate):
            return None
        return self._record(
            document,
            f"Upgraded {_plural(upgrades, 'relationship')} to UID references in {document.name}",
        )


class ContactToMetadataCurator(_EngineCurator):
    name = "contact_to_metadata"
    phase = Phase.IMPROVEMENT
    setting_name = "contact_to_metadata_processor"
    description = "Syncs the Contact section of the body into EMAIL, TEL, ADR and URL metadata fields."

    def __init__(
        self,
        engine: RelationshipSyncEngine,
        normalize: Callable[[str], str | None],
    ) -> None:
        super().__init__(engine)
        self._normalize = normalize

    def process(self, document: ContactDocument) -> ChangeRecord | None:
        listed = parse_contact_section(ContactDocument.load(self._engine.store, document.ref).body)
        if not listed:
            return None
        added: list[str] = []
        synced = 0

        def mutate(metadata: dict[str, Any]) -> bool:
            nonlocal synced
            added.clear()
            synced = 0
            known = {
                match_value(f, self._normalize) for f in contact_fields_from_metadata(metadata)
            }
            for contact in listed:
                key = match_value(contact, self._normalize)
                if key in known:
                    continue
                known.add(key)
                value = contact.value.strip()
                if contact.field == "TEL":
                    value = self._normalize(value) or value
                fields = contact_field_keys(
                    ContactField(contact.field, contact.selector, value),
                    free_index(metadata, contact.field, contact.selector),
                )
                metadata.update(fields)
                added.extend(fields)
                synced += 1
            return bool(added)

        if not self._engine.update_metadata(document.ref, mutate):
            return None
        logger.debug("Contact section of %s added %s", document.ref, ", ".join(added))
        return self._record(
            document,
            f"Synced {_plural(synced, 'contact field')} from Contact section of {document.name}",
        )


class MetadataToContactCurator(_EngineCurator):
    name = "metadata_to_contact"
    phase = Phase.IMPROVEMENT
    setting_name = "metadata_to_contact_processor"
    description = "Adds EMAIL, TEL, ADR and URL metadata fields missing from the Contact section."

    def __init__(
        self,
        engine: RelationshipSyncEngine,
        normalize: Callable[[str], str | None],
    ) -> None:
        super().__init__(engine)
        self._normalize = normalize

    def process(self, document: ContactDocument) -> ChangeRecord | None:
        missing = 0

        def rewrite(body: str, metadata: dict[str, Any]) -> str:
            nonlocal missing
            stored = contact_fields_from_metadata(metadata)
            listed = parse_contact_section(body)
            listed_keys = {match_value(f, self._normalize) for f in listed}
            missing = sum(1 for f in stored if match_value(f, self._normalize) not in listed_keys)
            if not missing:
                return body
            stored_keys = {match_value(f, self._normalize) for f in stored}
            # Body-only fields are kept so nothing is lost before they reach metadata.
            body_only = [f for f in listed if match_value(f, self._normalize) not in stored_keys]
            return write_contact_section(body, render_contact_lines([*stored, *body_only]))

        if not self._engine.rewrite_body(document.ref, rewrite):
            return None
        return self._record(
            document,
            f"Added {_plural(missing, 'contact field')} to Contact section of {document.name}",
        )


class VCardWriteBackCurator(_EngineCurator):
    name = "vcard_write_back"
    phase = Phase.IMPROVEMENT
    setting_name = "vcard_write_back_processor"
    description = "Writes contacts to the vCard sink when the contact's REV is newer than the stored card."

    def __init__(self, engine: RelationshipSyncEngine, sink: VCardSink) -> None:
        super().__init__(engine)
        self._sink = sink

    def process(self, document: ContactDocument) -> ChangeRecord | None:
        current = ContactDocument.load(self._engine.store, document.ref)
        if not current.uid or not current.rev:
            return None
        stored = self._sink.read_revision(current.uid)
        if stored is not None and not is_newer(current.rev, stored):
            return None
        self._sink.write(current.uid, vcard_properties(current.metadata))
        action = "created" if stored is None else "updated"
        logger.debug("vCard %s for %s (UID %s)", action, current.ref, current.uid)
        return self._record(document, f"vCard {action} for {current.name}")
