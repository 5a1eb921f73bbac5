"""Tests for the Markdown folder store with YAML frontmatter."""

import os
import threading

import pytest

from kith.infrastructure import MarkdownFolderStore
from kith.infrastructure.markdown_store import join_frontmatter, split_frontmatter

JANE = """---
FN: Jane Doe
RELATED[parent]: name:Ann Doe
X-CUSTOM:
  nested: true
---
# Jane Doe

## Related
- mother [[Ann Doe]]
"""


@pytest.fixture
def folder_store(tmp_path) -> MarkdownFolderStore:
    (tmp_path / "people").mkdir()
    (tmp_path / "people" / "Jane Doe.md").write_text(JANE, encoding="utf-8")
    (tmp_path / "people" / "Plain.md").write_text("Just text\n", encoding="utf-8")
    (tmp_path / "people" / "notes.txt").write_text("ignored", encoding="utf-8")
    return MarkdownFolderStore(tmp_path, poll_interval=0.05)


def test_list_documents(folder_store) -> None:
    assert folder_store.list_documents("people") == ["people/Jane Doe.md", "people/Plain.md"]
    assert folder_store.list_documents("missing") == []


def test_read_metadata_and_body(folder_store) -> None:
    metadata = folder_store.read_metadata("people/Jane Doe.md")
    assert metadata == {
        "FN": "Jane Doe",
        "RELATED[parent]": "name:Ann Doe",
        "X-CUSTOM": {"nested": True},
    }
    assert folder_store.read_body("people/Jane Doe.md").startswith("# Jane Doe\n")
    assert folder_store.read_metadata("people/Plain.md") == {}
    assert folder_store.read_body("people/Plain.md") == "Just text\n"


def test_writes_keep_the_other_part(folder_store) -> None:
    ref = "people/Jane Doe.md"
    metadata = folder_store.read_metadata(ref)
    metadata["REV"] = "20240101T000000Z"
    folder_store.write_metadata(ref, metadata)
    folder_store.write_body(ref, "# Jane\n")

    assert folder_store.read_metadata(ref)["REV"] == "20240101T000000Z"
    assert folder_store.read_metadata(ref)["X-CUSTOM"] == {"nested": True}
    assert folder_store.read_body(ref) == "# Jane\n"
    assert list(folder_store.read_metadata(ref))[0] == "FN"


def test_refs_outside_root_are_rejected(folder_store) -> None:
    with pytest.raises(ValueError):
        folder_store.read_body("../outside.md")


def test_split_and_join_frontmatter() -> None:
    metadata, body = split_frontmatter(JANE)
    assert split_frontmatter(join_frontmatter(metadata, body)) == (metadata, body)
    assert split_frontmatter("---\nnot: [closed\n---\nbody\n") == ({}, "body\n")
    assert split_frontmatter("---\n- a list\n---\nbody\n") == ({}, "body\n")
    assert join_frontmatter({}, "body\n") == "body\n"


def test_watch_reports_changed_documents(folder_store) -> None:
    changed = threading.Event()
    seen: list[str] = []

    def on_change(ref: str) -> None:
        seen.append(ref)
        changed.set()

    handle = folder_store.watch("people", on_change)
    try:
        path = folder_store.path_for("people/Plain.md")
        path.write_text("Edited\n", encoding="utf-8")
        stat = path.stat()
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))
        assert changed.wait(timeout=5)
    finally:
        handle.stop()
    assert "people/Plain.md" in seen
