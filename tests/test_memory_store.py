"""Tests for the in-memory document store and vCard sinks."""

import pytest

from kith.application import VCardProperty
from kith.infrastructure import FolderVCardSink, InMemoryDocumentStore
from kith.infrastructure.vcard_sink import format_vcard, read_rev_line


def test_reads_are_copies() -> None:
    store = InMemoryDocumentStore()
    store.add("c/a.md", {"FN": "A", "X": {"k": 1}}, "body")
    metadata = store.read_metadata("c/a.md")
    metadata["X"]["k"] = 2
    assert store.read_metadata("c/a.md")["X"] == {"k": 1}


def test_list_documents_filters_by_folder() -> None:
    store = InMemoryDocumentStore()
    store.add("c/a.md")
    store.add("other/b.md")
    assert store.list_documents("c") == ["c/a.md"]
    assert store.list_documents("") == ["c/a.md", "other/b.md"]


def test_missing_document_raises() -> None:
    with pytest.raises(KeyError):
        InMemoryDocumentStore().read_body("c/missing.md")


def test_watch_is_called_on_every_write_until_stopped() -> None:
    store = InMemoryDocumentStore()
    store.add("c/a.md")
    seen: list[str] = []
    handle = store.watch("c", seen.append)

    store.write_body("c/a.md", "x")
    store.write_metadata("c/a.md", {"FN": "A"})
    handle.stop()
    store.write_body("c/a.md", "y")

    assert seen == ["c/a.md", "c/a.md"]


def test_folder_sink_writes_and_reads_revision(tmp_path) -> None:
    sink = FolderVCardSink(tmp_path / "cards")
    assert sink.read_revision("abc") is None

    sink.write(
        "abc",
        [
            VCardProperty("VERSION", (), "4.0"),
            VCardProperty("FN", (), "Jane, Doe"),
            VCardProperty("REV", (), "20240101T000000Z"),
        ],
    )

    assert sink.read_revision("abc") == "20240101T000000Z"
    text = sink.path_for("abc").read_text(encoding="utf-8")
    assert text.startswith("BEGIN:VCARD\r\n")
    assert "FN:Jane\\, Doe\r\n" in text


def test_format_vcard_params() -> None:
    text = format_vcard([VCardProperty("RELATED", (("TYPE", "parent"),), "Ann")])
    assert "RELATED;TYPE=parent:Ann" in text
    assert read_rev_line(text) is None
