"""Mapping from a contact's metadata block to vCard properties (no text codec here)."""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from kith.domain import RelationshipSet, parse_key
from kith.domain.entities import REV_KEY, UID_KEY, normalize_uid
from kith.domain.relationships import (
    RELATED_KEY,
    TARGET_NAME,
    TARGET_UUID,
    is_blank_value,
    is_uuid,
)

VCARD_VERSION = "4.0"

# Component order of structured properties (RFC 6350).
STRUCTURED_COMPONENTS: dict[str, tuple[str, ...]] = {
    "N": ("FN", "GN", "MN", "PREFIX", "SUFFIX"),
    "ADR": ("POBOX", "EXT", "STREET", "LOCALITY", "REGION", "POSTAL", "COUNTRY"),
}


@dataclass(frozen=True)
class VCardProperty:
    name: str
    params: tuple[tuple[str, str], ...] = ()
    value: str = ""


def related_value(target) -> str:
    """urn:uuid: for UUID targets, plain text for names, uid: for other identifiers."""
    if target.kind == TARGET_UUID:
        return f"urn:uuid:{target.value}"
    if target.kind == TARGET_NAME:
        return target.value
    return f"uid:{target.value}"


def vcard_properties(metadata: Mapping[str, Any]) -> list[VCardProperty]:
    """Properties for one contact, VERSION first and RELATED lines in set order."""
    props = [VCardProperty("VERSION", (), VCARD_VERSION)]
    structured: dict[tuple[str, int | None, str | None], dict[str, str]] = {}

    for key, value in metadata.items():
        parsed = parse_key(key)
        name = parsed.key.upper()
        if name in (RELATED_KEY, "VERSION") or is_blank_value(value):
            continue
        if isinstance(value, (dict, list, tuple)):
            continue
        text = str(value).strip()
        if name == UID_KEY:
            uid = normalize_uid(text) or text
            props.append(VCardProperty(UID_KEY, (), f"urn:uuid:{uid}" if is_uuid(uid) else uid))
        elif parsed.subkey and name in STRUCTURED_COMPONENTS:
            group = structured.setdefault((name, parsed.index, parsed.selector), {})
            group[parsed.subkey.upper()] = text
        else:
            params = (("TYPE", parsed.selector),) if parsed.selector else ()
            prop_name = f"{name}.{parsed.subkey}" if parsed.subkey else name
            props.append(VCardProperty(prop_name, params, text))

    for (name, _index, selector), components in structured.items():
        ordered = ";".join(components.get(part, "") for part in STRUCTURED_COMPONENTS[name])
        params = (("TYPE", selector),) if selector else ()
        props.append(VCardProperty(name, params, ordered))

    for entry in RelationshipSet.from_metadata(metadata):
        props.append(
            VCardProperty(RELATED_KEY, (("TYPE", entry.type),), related_value(entry.target))
        )
    return props


def revision_of(properties: list[VCardProperty]) -> str | None:
    for prop in properties:
        if prop.name == REV_KEY:
            return prop.value
    return None
