"""Tests for RelationshipSet construction, dedup, serialization and metadata helpers."""

from kith.domain import RelationshipSet, RelationshipTarget
from kith.domain.relationships import (
    TARGET_NAME,
    TARGET_UID,
    TARGET_UUID,
    replace_relationship_fields,
    strip_relationship_fields,
)

JANE_UID = "3f2504e0-4f89-11d3-9a0c-0305e82c3301"


def test_duplicate_pairs_under_different_indices_collapse() -> None:
    rset = RelationshipSet.from_metadata(
        {
            "RELATED[parent]": "Jane Doe",
            "RELATED[1:parent]": "Jane Doe",
            "RELATED[2:parent]": "John Doe",
        }
    )
    assert rset.size() == 2
    assert [(e.type, e.target.value) for e in rset.entries()] == [
        ("parent", "Jane Doe"),
        ("parent", "John Doe"),
    ]


def test_blank_values_are_dropped() -> None:
    rset = RelationshipSet.from_metadata(
        {
            "RELATED[friend]": "",
            "RELATED[1:friend]": "   ",
            "RELATED[2:friend]": None,
            "RELATED[3:friend]": "null",
            "RELATED[4:friend]": "UNDEFINED",
            "RELATED[5:friend]": "name:  ",
            "RELATED[6:friend]": "Bob",
        }
    )
    assert [e.target.value for e in rset] == ["Bob"]


def test_round_trip_through_metadata_fields() -> None:
    rset = RelationshipSet()
    rset.add("parent", "name:Jane Doe")
    rset.add("friend", "Bob")
    rset.add("parent", f"urn:uuid:{JANE_UID}")
    rset.add("colleague", "uid:ext-42")

    fields = rset.to_metadata_fields()
    assert fields == {
        "RELATED[parent]": "name:Jane Doe",
        "RELATED[friend]": "name:Bob",
        "RELATED[1:parent]": f"urn:uuid:{JANE_UID}",
        "RELATED[colleague]": "uid:ext-42",
    }
    assert RelationshipSet.from_metadata(fields) == rset


def test_add_normalizes_type_and_ignores_name_case() -> None:
    rset = RelationshipSet()
    assert rset.add("Step Parent", "Jane Doe") is True
    assert rset.add("step_parent", "  jane doe ") is False
    assert rset.entries()[0].type == "step-parent"
    assert rset.contains("STEP-PARENT", "JANE DOE")


def test_remove() -> None:
    rset = RelationshipSet.from_metadata({"RELATED[friend]": "Bob", "RELATED[sibling]": "Ann"})
    assert rset.remove("friend", "bob") is True
    assert rset.remove("friend", "bob") is False
    assert len(rset) == 1


def test_target_parsing() -> None:
    assert RelationshipTarget.parse(f"urn:uuid:{JANE_UID}").kind == TARGET_UUID
    assert RelationshipTarget.parse("uid:ext-1").kind == TARGET_UID
    assert RelationshipTarget.parse("name:Jane").kind == TARGET_NAME
    assert RelationshipTarget.parse("Jane") == RelationshipTarget.for_name("jane")
    assert RelationshipTarget.for_uid(f"urn:uuid:{JANE_UID}").encode() == f"urn:uuid:{JANE_UID}"


def test_legacy_dot_form_and_list_values() -> None:
    rset = RelationshipSet.from_metadata(
        {
            "RELATED.friend": "Bob",
            "RELATED[sibling]": ["Ann", "Tom", "Ann"],
            "RELATED[spouse]": {"name": "ignored"},
            "RELATED": "no type",
        }
    )
    assert [(e.type, e.target.value) for e in rset] == [
        ("friend", "Bob"),
        ("sibling", "Ann"),
        ("sibling", "Tom"),
    ]


def test_related_key_prefix_is_case_insensitive() -> None:
    rset = RelationshipSet.from_metadata({"related[friend]": "Bob"})
    assert rset.size() == 1


def test_equivalent_ignores_order() -> None:
    a = RelationshipSet.from_metadata({"RELATED[friend]": "Bob", "RELATED[sibling]": "Ann"})
    b = RelationshipSet.from_metadata({"RELATED[sibling]": "Ann", "RELATED[friend]": "Bob"})
    assert a != b
    assert a.equivalent(b)


def test_replace_relationship_fields_keeps_other_keys_in_place() -> None:
    metadata = {
        "FN": "Jane Doe",
        "RELATED[friend]": "Bob",
        "EMAIL[HOME]": "jane@example.com",
        "RELATED[1:friend]": "Tom",
        "X-CUSTOM": {"nested": True},
    }
    rset = RelationshipSet.from_metadata(metadata)
    rset.remove("friend", "Bob")

    updated = replace_relationship_fields(metadata, rset)
    assert list(updated) == ["FN", "RELATED[friend]", "EMAIL[HOME]", "X-CUSTOM"]
    assert updated["RELATED[friend]"] == "name:Tom"
    assert updated["X-CUSTOM"] == {"nested": True}
    assert strip_relationship_fields(updated) == {
        "FN": "Jane Doe",
        "EMAIL[HOME]": "jane@example.com",
        "X-CUSTOM": {"nested": True},
    }


def test_replace_appends_block_when_none_existed() -> None:
    rset = RelationshipSet()
    rset.add("friend", "Bob")
    assert list(replace_relationship_fields({"FN": "A"}, rset)) == ["FN", "RELATED[friend]"]
