"""Domain entity: a contact document as read from the store."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

from kith.domain.gender import Gender, parse_gender
from kith.domain.relationships import RelationshipSet, is_blank_value

UID_KEY = "UID"
REV_KEY = "REV"
GENDER_KEY = "GENDER"
FN_KEY = "FN"
GIVEN_NAME_KEY = "N.GN"
FAMILY_NAME_KEY = "N.FN"


def normalize_uid(value: Any) -> str | None:
    """Bare UID without a urn:uuid: prefix, or None when blank."""
    if is_blank_value(value):
        return None
    text = str(value).strip()
    if text.lower().startswith("urn:uuid:"):
        text = text[len("urn:uuid:"):]
    return text or None


def display_name(ref: str, metadata: Mapping[str, Any]) -> str:
    """FN, else given + family name, else the document's file stem."""
    full = metadata.get(FN_KEY)
    if not is_blank_value(full):
        return str(full).strip()
    parts = [
        str(metadata[k]).strip()
        for k in (GIVEN_NAME_KEY, FAMILY_NAME_KEY)
        if not is_blank_value(metadata.get(k))
    ]
    if parts:
        return " ".join(parts)
    return ref_stem(ref)


def ref_stem(ref: str) -> str:
    return PurePosixPath(ref).stem


@dataclass(frozen=True)
class ContactDocument:
    """
    Snapshot of one contact document: metadata block, body text, derived fields.
    Snapshots are never written back directly; writes go through the store.
    """

    ref: str
    metadata: dict[str, Any] = field(default_factory=dict)
    body: str = ""

    @classmethod
    def load(cls, store, ref: str) -> "ContactDocument":
        return cls(
            ref=ref,
            metadata=dict(store.read_metadata(ref) or {}),
            body=store.read_body(ref) or "",
        )

    @property
    def uid(self) -> str | None:
        return normalize_uid(self.metadata.get(UID_KEY))

    @property
    def name(self) -> str:
        return display_name(self.ref, self.metadata)

    @property
    def gender(self) -> Gender | None:
        return parse_gender(self.metadata.get(GENDER_KEY))

    @property
    def rev(self) -> str | None:
        value = self.metadata.get(REV_KEY)
        return None if is_blank_value(value) else str(value).strip()

    @property
    def relationships(self) -> RelationshipSet:
        return RelationshipSet.from_metadata(self.metadata)

    def matches_name(self, name: str) -> bool:
        wanted = (name or "").strip().casefold()
        if not wanted:
            return False
        return wanted in (self.name.casefold(), ref_stem(self.ref).casefold())
