"""Tests for syncing documents the store reports as changed."""

from conftest import ANN_UID, ref

from kith.application import SyncOnChange
from kith.domain import ContactDocument
from kith.domain.relationships import relationship_fields


def test_changed_document_is_synced(store, engine) -> None:
    store.add(ref("Ann Doe"), {"FN": "Ann Doe", "UID": ANN_UID}, "# Ann Doe\n")
    store.add(ref("Jane Doe"), {"FN": "Jane Doe"}, "# Jane Doe\n")
    watcher = SyncOnChange(engine)
    watcher.start()
    try:
        store.write_body(ref("Jane Doe"), "# Jane Doe\n\n## Related\n- mom [[Ann Doe]]\n")
        watcher.join()
    finally:
        watcher.stop()

    jane = ContactDocument.load(store, ref("Jane Doe"))
    assert relationship_fields(jane.metadata) == {"RELATED[parent]": f"urn:uuid:{ANN_UID}"}
    assert store.read_metadata(ref("Ann Doe"))["GENDER"] == "F"


def test_stopped_watcher_ignores_changes(store, engine) -> None:
    store.add(ref("Jane Doe"), {"FN": "Jane Doe"}, "")
    watcher = SyncOnChange(engine)
    watcher.start()
    watcher.stop()

    store.write_body(ref("Jane Doe"), "## Related\n- friend [[Bob]]\n")

    assert relationship_fields(store.read_metadata(ref("Jane Doe"))) == {}
