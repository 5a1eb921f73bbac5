"""End-to-end reconciliation over an in-memory folder."""

import logging

from conftest import FOLDER, ref

from kith.application import ChangeRecord, Phase
from kith.bootstrap import build_pipeline
from kith.config import Settings
from kith.domain import ContactDocument, parse_related_items
from kith.domain.relationships import relationship_fields
from kith.infrastructure import InMemoryVCardSink


def _pipeline(store, settings: Settings | None = None):
    return build_pipeline(settings or Settings(), store=store, folder=FOLDER, sink=InMemoryVCardSink())


def _family(store) -> None:
    store.add(ref("Jane Doe"), {"FN": "Jane Doe"}, "# Jane Doe\n\n## Related\n- mother [[Ann Doe]]\n")
    store.add(ref("Ann Doe"), {"FN": "Ann Doe"}, "# Ann Doe\n")


def _revisions(store) -> dict[str, str | None]:
    return {r: store.read_metadata(r).get("REV") for r in store.list_documents(FOLDER)}


class _AlwaysChanging:
    name = "always_changing"
    phase = Phase.IMPROVEMENT
    setting_name = "always_changing_processor"
    description = "Bumps a counter on every run."
    default_enabled = True

    def __init__(self, engine) -> None:
        self._engine = engine

    def process(self, document):
        def mutate(metadata):
            metadata["X-COUNTER"] = int(metadata.get("X-COUNTER", 0)) + 1
            return True

        self._engine.update_metadata(document.ref, mutate)
        return ChangeRecord(self.name, self.phase.value, document.ref, "bumped")


def test_reconcile_converges_and_links_both_sides(store) -> None:
    _family(store)
    pipeline = _pipeline(store)

    report = pipeline.driver.reconcile_all(max_iterations=10)

    assert report.converged and not report.hit_iteration_cap
    assert report.iterations <= 10
    assert report.changed_per_iteration[-1] == 0

    jane = ContactDocument.load(store, ref("Jane Doe"))
    ann = ContactDocument.load(store, ref("Ann Doe"))
    assert jane.uid and ann.uid
    assert relationship_fields(jane.metadata) == {"RELATED[parent]": f"urn:uuid:{ann.uid}"}
    assert relationship_fields(ann.metadata) == {"RELATED[child]": f"urn:uuid:{jane.uid}"}
    assert ann.metadata["GENDER"] == "F"
    assert [(i.label, i.name) for i in parse_related_items(ann.body)] == [("child", "Jane Doe")]


def test_write_back_runs_once_after_the_loop(store) -> None:
    _family(store)
    pipeline = _pipeline(store)

    report = pipeline.driver.reconcile_all()

    assert not any(c.curator == "vcard_write_back" for c in report.changes)
    assert sorted(c.ref for c in report.write_back_changes) == [ref("Ann Doe"), ref("Jane Doe")]
    assert pipeline.sink.write_count == 2
    assert pipeline.registry.is_enabled("vcard_write_back")


def test_second_run_changes_nothing(store) -> None:
    _family(store)
    pipeline = _pipeline(store)
    pipeline.driver.reconcile_all()
    before = _revisions(store)

    report = pipeline.driver.reconcile_all()

    assert report.converged
    assert report.iterations == 1
    assert report.changes == []
    assert report.write_back_changes == []
    assert _revisions(store) == before


def test_disabled_write_back_is_not_run(store) -> None:
    _family(store)
    pipeline = _pipeline(store, Settings(curators={"vcard_write_back": False}))

    report = pipeline.driver.reconcile_all()

    assert report.write_back_changes == []
    assert pipeline.sink.records == {}
    assert pipeline.registry.is_enabled("vcard_write_back") is False


def test_iteration_cap_is_reported(store, caplog) -> None:
    _family(store)
    pipeline = _pipeline(store)
    pipeline.registry.register(_AlwaysChanging(pipeline.engine))

    with caplog.at_level(logging.WARNING, logger="kith.application.reconcile"):
        report = pipeline.driver.reconcile_all(max_iterations=3)

    assert report.iterations == 3
    assert report.hit_iteration_cap and not report.converged
    assert "stopped after 3 iterations" in caplog.text


def test_failing_rule_does_not_abort_reconciliation(store) -> None:
    _family(store)
    pipeline = _pipeline(store)

    class Broken:
        name = "broken"
        phase = Phase.IMMEDIATE
        setting_name = "broken_processor"
        description = "Always raises."
        default_enabled = True

        def process(self, document):
            raise RuntimeError("broken rule")

    pipeline.registry.register(Broken())

    report = pipeline.driver.reconcile_all()

    assert report.converged
    assert ContactDocument.load(store, ref("Ann Doe")).metadata["GENDER"] == "F"


def test_body_deletion_survives_a_new_pipeline(store) -> None:
    store.add(ref("Jane Doe"), {"FN": "Jane Doe"}, "# Jane Doe\n\n## Related\n- friend [[Bob Smith]]\n")
    store.add(ref("Bob Smith"), {"FN": "Bob Smith"}, "# Bob Smith\n")
    _pipeline(store).driver.reconcile_all()
    assert relationship_fields(store.read_metadata(ref("Bob Smith")))

    store.write_body(ref("Jane Doe"), "# Jane Doe\n\n## Related\n")
    report = _pipeline(store).driver.reconcile_all()

    assert report.converged
    jane = ContactDocument.load(store, ref("Jane Doe"))
    assert parse_related_items(jane.body) == []
    assert relationship_fields(jane.metadata) == {}


def test_contact_section_and_metadata_converge(store) -> None:
    store.add(
        ref("Jane Doe"),
        {"FN": "Jane Doe", "URL": "https://jane.example.com"},
        "# Jane Doe\n\n## Contact\n- jane@example.com\n",
    )
    pipeline = _pipeline(store)

    report = pipeline.driver.reconcile_all()

    assert report.converged
    jane = ContactDocument.load(store, ref("Jane Doe"))
    assert jane.metadata["EMAIL"] == "jane@example.com"
    assert jane.body == (
        "# Jane Doe\n\n## Contact\nEmail\n- jane@example.com\n"
        "Website\n- https://jane.example.com\n"
    )
    assert pipeline.driver.reconcile_all().changes == []
