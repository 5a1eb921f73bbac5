"""Structured metadata keys: BASE, BASE.sub, BASE[selector], BASE[index:selector].sub."""

import re
from typing import NamedTuple

_KEY_RE = re.compile(
    r"^(?P<key>[^\[\].]+)"
    r"(?:\[(?P<bracket>[^\[\]]*)\])?"
    r"(?:\.(?P<subkey>.+))?$"
)
_INDEXED_RE = re.compile(r"^(?P<index>\d+):(?P<selector>.*)$")


class ParsedKey(NamedTuple):
    """Decomposed metadata key. Absent parts are None."""

    key: str
    index: int | None = None
    selector: str | None = None
    subkey: str | None = None


def parse_key(raw: str) -> ParsedKey:
    """Split a metadata key into base, index, selector and subkey.

    Never raises. A key that does not follow the scheme (unclosed bracket,
    stray characters after the bracket) comes back as ParsedKey(key=raw).
    """
    text = raw if isinstance(raw, str) else str(raw)
    match = _KEY_RE.match(text)
    if not match:
        return ParsedKey(key=text)

    index: int | None = None
    selector: str | None = None
    bracket = match.group("bracket")
    if bracket is not None:
        indexed = _INDEXED_RE.match(bracket)
        if indexed:
            index = int(indexed.group("index"))
            selector = indexed.group("selector") or None
        else:
            selector = bracket or None

    return ParsedKey(
        key=match.group("key"),
        index=index,
        selector=selector,
        subkey=match.group("subkey") or None,
    )


def format_key(
    key: str,
    index: int | None = None,
    selector: str | None = None,
    subkey: str | None = None,
) -> str:
    """Inverse of parse_key."""
    out = key
    if index is not None:
        out += f"[{index}:{selector or ''}]"
    elif selector:
        out += f"[{selector}]"
    if subkey:
        out += f".{subkey}"
    return out
