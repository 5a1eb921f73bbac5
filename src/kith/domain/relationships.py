"""Relationship entries and the deduplicated, order-preserving RelationshipSet."""

import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from kith.domain.keys import format_key, parse_key

logger = logging.getLogger(__name__)

RELATED_KEY = "RELATED"

TARGET_UUID = "uuid"
TARGET_UID = "uid"
TARGET_NAME = "name"

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE
)
_BLANK_WORDS = {"null", "undefined"}


def is_blank_value(value: Any) -> bool:
    """True for None, empty or whitespace strings, and the words null/undefined."""
    if value is None:
        return True
    text = str(value).strip()
    return not text or text.lower() in _BLANK_WORDS


def is_uuid(value: str) -> bool:
    return bool(_UUID_RE.match(value or ""))


def normalize_type(value: Any) -> str:
    """Lowercase, trimmed, whitespace and underscores collapsed to hyphens."""
    text = str(value or "").strip().lower()
    return re.sub(r"[\s_]+", "-", text)


@dataclass(frozen=True)
class RelationshipTarget:
    """Where a relationship points: a UUID, some other UID, or a plain display name."""

    kind: str
    value: str

    @classmethod
    def parse(cls, raw: Any) -> "RelationshipTarget":
        text = str(raw).strip()
        if text.lower().startswith("urn:uuid:"):
            return cls(TARGET_UUID, text[len("urn:uuid:"):].strip())
        if text.lower().startswith("uid:"):
            return cls(TARGET_UID, text[len("uid:"):].strip())
        if text.lower().startswith("name:"):
            return cls(TARGET_NAME, text[len("name:"):].strip())
        return cls(TARGET_NAME, text)

    @classmethod
    def for_uid(cls, uid: str) -> "RelationshipTarget":
        uid = uid.strip()
        if uid.lower().startswith("urn:uuid:"):
            uid = uid[len("urn:uuid:"):]
        return cls(TARGET_UUID if is_uuid(uid) else TARGET_UID, uid)

    @classmethod
    def for_name(cls, name: str) -> "RelationshipTarget":
        return cls(TARGET_NAME, name.strip())

    @property
    def is_name(self) -> bool:
        return self.kind == TARGET_NAME

    def encode(self) -> str:
        if self.kind == TARGET_UUID:
            return f"urn:uuid:{self.value}"
        if self.kind == TARGET_UID:
            return f"uid:{self.value}"
        return f"name:{self.value}"

    def match_key(self) -> tuple[str, str]:
        """Comparison key: names compare case-folded, UIDs compare exactly."""
        if self.is_name:
            return (TARGET_NAME, self.value.strip().casefold())
        return ("uid", self.value.strip())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RelationshipTarget):
            return NotImplemented
        return self.match_key() == other.match_key()

    def __hash__(self) -> int:
        return hash(self.match_key())

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RelationshipEntry:
    """A typed edge to a target. Equality is (type, target) after normalization."""

    type: str
    target: RelationshipTarget

    def __str__(self) -> str:
        return f"{self.type} -> {self.target.value}"


class RelationshipSet:
    """Ordered relationship entries with no duplicates and no blank targets.

    Building from metadata never raises: malformed keys and blank values are
    dropped. Serialization gives the first entry of each type the bare key
    RELATED[type] and later ones RELATED[1:type], RELATED[2:type], ...
    """

    def __init__(self, entries: Iterable[RelationshipEntry] = ()) -> None:
        self._entries: list[RelationshipEntry] = []
        for entry in entries:
            self.add(entry.type, entry.target)

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any] | None) -> "RelationshipSet":
        rset = cls()
        for key, value in (metadata or {}).items():
            parsed = parse_key(key)
            if parsed.key.upper() != RELATED_KEY:
                continue
            rel_type = parsed.selector or parsed.subkey
            if not rel_type:
                logger.debug("Skipping RELATED key without a type: %r", key)
                continue
            if isinstance(value, Mapping):
                logger.debug("Skipping RELATED key %r with a mapping value", key)
                continue
            values = value if isinstance(value, (list, tuple)) else [value]
            for item in values:
                if isinstance(item, (Mapping, list, tuple)):
                    continue
                rset.add(rel_type, item)
        return rset

    def add(self, rel_type: Any, target: Any) -> bool:
        """Append an entry unless it is blank or already present. Returns True if added."""
        entry = self._make_entry(rel_type, target)
        if entry is None or entry in self._entries:
            return False
        self._entries.append(entry)
        return True

    def remove(self, rel_type: Any, target: Any) -> bool:
        entry = self._make_entry(rel_type, target)
        if entry is None or entry not in self._entries:
            return False
        self._entries.remove(entry)
        return True

    def replace(self, old: RelationshipEntry, new: RelationshipEntry) -> None:
        """Swap an entry in place, keeping its position."""
        position = self._entries.index(old)
        if new in self._entries and self._entries[position] != new:
            del self._entries[position]
            return
        self._entries[position] = new

    def contains(self, rel_type: Any, target: Any) -> bool:
        entry = self._make_entry(rel_type, target)
        return entry is not None and entry in self._entries

    def entries(self) -> list[RelationshipEntry]:
        return list(self._entries)

    def by_type(self, rel_type: str) -> list[RelationshipEntry]:
        wanted = normalize_type(rel_type)
        return [e for e in self._entries if e.type == wanted]

    def size(self) -> int:
        return len(self._entries)

    def to_metadata_fields(self) -> dict[str, str]:
        fields: dict[str, str] = {}
        seen: dict[str, int] = {}
        for entry in self._entries:
            count = seen.get(entry.type, 0)
            if count == 0:
                key = format_key(RELATED_KEY, selector=entry.type)
            else:
                key = format_key(RELATED_KEY, index=count, selector=entry.type)
            seen[entry.type] = count + 1
            fields[key] = entry.target.encode()
        return fields

    def merge(self, other: "RelationshipSet") -> "RelationshipSet":
        return RelationshipSet([*self._entries, *other._entries])

    def equivalent(self, other: "RelationshipSet") -> bool:
        """Same entries regardless of order."""
        return set(self._entries) == set(other._entries) and len(self) == len(other)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RelationshipSet):
            return NotImplemented
        return self._entries == other._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[RelationshipEntry]:
        return iter(list(self._entries))

    def __repr__(self) -> str:
        return f"RelationshipSet({[str(e) for e in self._entries]})"

    @staticmethod
    def _make_entry(rel_type: Any, target: Any) -> RelationshipEntry | None:
        normalized = normalize_type(rel_type)
        if not normalized:
            return None
        if isinstance(target, RelationshipTarget):
            parsed = target
        else:
            if is_blank_value(target):
                return None
            parsed = RelationshipTarget.parse(target)
        if is_blank_value(parsed.value):
            return None
        return RelationshipEntry(normalized, parsed)


def is_relationship_key(key: str) -> bool:
    return parse_key(key).key.upper() == RELATED_KEY


def strip_relationship_fields(metadata: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in metadata.items() if not is_relationship_key(k)}


def replace_relationship_fields(
    metadata: Mapping[str, Any], rset: RelationshipSet
) -> dict[str, Any]:
    """Swap the RELATED keys for the set's fields; other keys keep their order and values.

    The new RELATED block goes where the first old RELATED key was, or at the end.
    """
    out: dict[str, Any] = {}
    inserted = False
    new_fields = rset.to_metadata_fields()
    for key, value in metadata.items():
        if is_relationship_key(key):
            if not inserted:
                out.update(new_fields)
                inserted = True
            continue
        out[key] = value
    if not inserted:
        out.update(new_fields)
    return out


def relationship_fields(metadata: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in metadata.items() if is_relationship_key(k)}
