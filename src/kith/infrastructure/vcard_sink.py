"""VCardSink implementations: in memory, and one .vcf file per UID in a folder."""

import logging
import re
import threading
from pathlib import Path

from kith.application.vcard import VCardProperty, revision_of

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]")


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace(",", "\\,")


def format_vcard(properties: list[VCardProperty]) -> str:
    """Render properties as a vCard text block (no line folding)."""
    lines = ["BEGIN:VCARD"]
    for prop in properties:
        params = "".join(f";{name}={value}" for name, value in prop.params)
        lines.append(f"{prop.name}{params}:{_escape(prop.value)}")
    lines.append("END:VCARD")
    return "\r\n".join(lines) + "\r\n"


def read_rev_line(text: str) -> str | None:
    for line in text.splitlines():
        name, sep, value = line.partition(":")
        if sep and name.split(";", 1)[0].strip().upper() == "REV":
            return value.strip() or None
    return None


class InMemoryVCardSink:
    def __init__(self) -> None:
        self.records: dict[str, list[VCardProperty]] = {}
        self.write_count = 0
        self._lock = threading.Lock()

    def read_revision(self, uid: str) -> str | None:
        with self._lock:
            properties = self.records.get(uid)
        return revision_of(properties) if properties is not None else None

    def write(self, uid: str, properties: list) -> None:
        with self._lock:
            self.records[uid] = list(properties)
            self.write_count += 1


class FolderVCardSink:
    """Writes <uid>.vcf files; the stored revision is read back from the REV line."""

    def __init__(self, folder: str | Path) -> None:
        self.folder = Path(folder)
        self._lock = threading.Lock()

    def path_for(self, uid: str) -> Path:
        return self.folder / f"{_SAFE_NAME.sub('_', uid)}.vcf"

    def read_revision(self, uid: str) -> str | None:
        path = self.path_for(uid)
        if not path.exists():
            return None
        return read_rev_line(path.read_text(encoding="utf-8"))

    def write(self, uid: str, properties: list) -> None:
        with self._lock:
            self.folder.mkdir(parents=True, exist_ok=True)
            path = self.path_for(uid)
            path.write_text(format_vcard(properties), encoding="utf-8", newline="")
        logger.debug("Wrote %s", path)
