"""EMAIL, TEL, ADR and URL metadata keys as a flat list of contact fields."""

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from kith.domain.keys import format_key, parse_key
from kith.domain.relationships import is_blank_value

CONTACT_FIELDS = ("EMAIL", "TEL", "ADR", "URL")

# Components a one-line address is split into, in order.
ADDRESS_PARTS = ("STREET", "LOCALITY", "REGION", "POSTAL", "COUNTRY")
_ADDRESS_ORDER = ("POBOX", "EXT", *ADDRESS_PARTS)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL_RE = re.compile(r"^(?:https?://|www\.)\S+$", re.IGNORECASE)
_PHONE_RE = re.compile(r"^(?:tel:)?\+?[\d\s().-]+$", re.IGNORECASE)


@dataclass(frozen=True)
class ContactField:
    """One contact value. Addresses carry their components joined with ", "."""

    field: str
    selector: str | None
    value: str


def detect_field(value: str) -> str | None:
    """Field type implied by the shape of a bare value, if any."""
    text = value.strip()
    if _EMAIL_RE.match(text):
        return "EMAIL"
    if _URL_RE.match(text):
        return "URL"
    if _PHONE_RE.match(text) and sum(ch.isdigit() for ch in text) >= 7:
        return "TEL"
    return None


def contact_fields_from_metadata(metadata: Mapping[str, Any]) -> list[ContactField]:
    """Contact fields in metadata order. Address components are joined into one value."""
    slots: list[ContactField | tuple[int | None, str | None]] = []
    addresses: dict[tuple[int | None, str | None], dict[str, str]] = {}
    for key, value in metadata.items():
        parsed = parse_key(key)
        field = parsed.key.upper()
        if field not in CONTACT_FIELDS or is_blank_value(value):
            continue
        if isinstance(value, (dict, list, tuple)):
            continue
        text = str(value).strip()
        if field == "ADR":
            group = (parsed.index, parsed.selector)
            if group not in addresses:
                addresses[group] = {}
                slots.append(group)
            addresses[group][(parsed.subkey or "").upper()] = text
        elif parsed.subkey is None:
            slots.append(ContactField(field, parsed.selector, text))

    fields = []
    for slot in slots:
        if isinstance(slot, ContactField):
            fields.append(slot)
            continue
        components = addresses[slot]
        parts = [components[name] for name in _ADDRESS_ORDER if components.get(name)]
        # An ADR key without a component holds the whole address.
        if components.get(""):
            parts.insert(0, components[""])
        fields.append(ContactField("ADR", slot[1], ", ".join(parts)))
    return fields


def free_index(metadata: Mapping[str, Any], field: str, selector: str | None) -> int | None:
    """Smallest unused index for field and selector; None when the plain key is free."""
    wanted = (selector or "").casefold()
    taken = set()
    for key in metadata:
        parsed = parse_key(key)
        if parsed.key.upper() == field and (parsed.selector or "").casefold() == wanted:
            taken.add(parsed.index)
    if None not in taken:
        return None
    index = 1
    while index in taken:
        index += 1
    return index


def contact_field_keys(contact: ContactField, index: int | None = None) -> dict[str, str]:
    """Metadata keys and values for one field. Addresses split positionally into ADDRESS_PARTS."""
    if contact.field != "ADR":
        return {format_key(contact.field, index, contact.selector): contact.value}
    parts = [part.strip() for part in contact.value.split(",") if part.strip()]
    if len(parts) > len(ADDRESS_PARTS):
        keep = len(ADDRESS_PARTS) - 1
        parts = [", ".join(parts[:-keep]), *parts[-keep:]]
    return {
        format_key("ADR", index, contact.selector, name): part
        for name, part in zip(ADDRESS_PARTS, parts)
    }


def match_value(
    contact: ContactField,
    normalize_phone: Callable[[str], str | None] | None = None,
) -> tuple[str, str]:
    """Comparison key for a field: phones in E.164 when possible, everything else case-folded."""
    text = contact.value.strip()
    if contact.field == "TEL" and normalize_phone is not None:
        text = normalize_phone(text) or text
    elif contact.field == "ADR":
        text = ", ".join(part.strip() for part in text.split(",") if part.strip())
    return contact.field, text.casefold()
