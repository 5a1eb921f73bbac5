"""DocumentStore over a folder of Markdown files with YAML frontmatter."""

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

FENCE = "---"


def split_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Split a document into its frontmatter mapping and its body.

    A document without a leading --- fence, or whose frontmatter is not a
    mapping, has empty metadata and keeps its whole text as the body.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n") != FENCE:
        return {}, text
    for i in range(1, len(lines)):
        if lines[i].rstrip("\r\n") == FENCE:
            raw = "".join(lines[1:i])
            body = "".join(lines[i + 1:])
            try:
                data = yaml.safe_load(raw) if raw.strip() else {}
            except yaml.YAMLError as exc:
                logger.warning("Ignoring unreadable frontmatter: %s", exc)
                return {}, body
            if not isinstance(data, dict):
                return {}, body
            return {str(k): v for k, v in data.items()}, body
    return {}, text


def join_frontmatter(metadata: dict[str, Any], body: str) -> str:
    if not metadata:
        return body
    dumped = yaml.safe_dump(
        metadata, sort_keys=False, allow_unicode=True, default_flow_style=False
    )
    return f"{FENCE}\n{dumped}{FENCE}\n{body}"


class _PollingWatch:
    """Polls modification times on a daemon thread and reports changed refs."""

    def __init__(
        self,
        store: "MarkdownFolderStore",
        folder: str,
        on_change: Callable[[str], None],
        interval: float,
    ) -> None:
        self._store = store
        self._folder = folder
        self._on_change = on_change
        self._interval = interval
        self._stop = threading.Event()
        self._seen = self._snapshot()
        self._thread = threading.Thread(target=self._run, name=f"watch:{folder}", daemon=True)
        self._thread.start()

    def _snapshot(self) -> dict[str, int]:
        mtimes = {}
        for ref in self._store.list_documents(self._folder):
            try:
                mtimes[ref] = self._store.path_for(ref).stat().st_mtime_ns
            except FileNotFoundError:
                continue
        return mtimes

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            current = self._snapshot()
            changed = [ref for ref, mtime in current.items() if self._seen.get(ref) != mtime]
            self._seen = current
            for ref in changed:
                try:
                    self._on_change(ref)
                except Exception:
                    logger.exception("Watcher failed for %s", ref)

    def stop(self) -> None:
        self._stop.set()
        self._thread.join(timeout=self._interval * 2)


class MarkdownFolderStore:
    """Contacts as Markdown files under root. Refs are POSIX paths relative to root."""

    def __init__(self, root: str | Path, poll_interval: float = 1.0) -> None:
        self.root = Path(root)
        self.poll_interval = poll_interval
        self._lock = threading.RLock()

    def path_for(self, ref: str) -> Path:
        path = (self.root / ref).resolve()
        if self.root.resolve() not in path.parents:
            raise ValueError(f"Ref {ref!r} is outside the store root")
        return path

    def list_documents(self, folder: str) -> list[str]:
        base = self.root / folder if folder else self.root
        if not base.is_dir():
            return []
        return sorted(p.relative_to(self.root).as_posix() for p in base.rglob("*.md") if p.is_file())

    def _read(self, ref: str) -> tuple[dict[str, Any], str]:
        text = self.path_for(ref).read_text(encoding="utf-8")
        return split_frontmatter(text)

    def _write(self, ref: str, metadata: dict[str, Any], body: str) -> None:
        path = self.path_for(ref)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(join_frontmatter(metadata, body), encoding="utf-8")
        tmp.replace(path)

    def read_body(self, ref: str) -> str:
        with self._lock:
            return self._read(ref)[1]

    def write_body(self, ref: str, text: str) -> bool:
        with self._lock:
            metadata, _ = self._read(ref)
            self._write(ref, metadata, text)
        return True

    def read_metadata(self, ref: str) -> dict[str, Any]:
        with self._lock:
            return self._read(ref)[0]

    def write_metadata(self, ref: str, metadata: dict[str, Any]) -> bool:
        with self._lock:
            _, body = self._read(ref)
            self._write(ref, dict(metadata), body)
        return True

    def watch(self, folder: str, on_change: Callable[[str], None]) -> _PollingWatch:
        return _PollingWatch(self, folder, on_change, self.poll_interval)
