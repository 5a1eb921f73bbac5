"""Tests for mapping EMAIL, TEL, ADR and URL metadata keys to contact fields."""

import pytest

from kith.domain import ContactField
from kith.domain.contact_fields import (
    contact_field_keys,
    contact_fields_from_metadata,
    detect_field,
    free_index,
    match_value,
)


def test_fields_come_back_in_metadata_order() -> None:
    metadata = {
        "FN": "Jane Doe",
        "EMAIL[HOME]": "jane@example.com",
        "ADR[HOME].STREET": "1 Main St",
        "TEL[CELL]": "+12025551234",
        "ADR[HOME].LOCALITY": "Springfield",
        "URL": "https://jane.example.com",
        "EMAIL[1:HOME]": "",
        "RELATED[friend]": "name:Bob",
    }
    assert contact_fields_from_metadata(metadata) == [
        ContactField("EMAIL", "HOME", "jane@example.com"),
        ContactField("ADR", "HOME", "1 Main St, Springfield"),
        ContactField("TEL", "CELL", "+12025551234"),
        ContactField("URL", None, "https://jane.example.com"),
    ]


def test_address_splits_into_components() -> None:
    keys = contact_field_keys(
        ContactField("ADR", "WORK", "Suite 4, 2 Oak Ave, Portland, OR, 97201, USA")
    )
    assert keys == {
        "ADR[WORK].STREET": "Suite 4, 2 Oak Ave",
        "ADR[WORK].LOCALITY": "Portland",
        "ADR[WORK].REGION": "OR",
        "ADR[WORK].POSTAL": "97201",
        "ADR[WORK].COUNTRY": "USA",
    }
    assert contact_fields_from_metadata(keys) == [
        ContactField("ADR", "WORK", "Suite 4, 2 Oak Ave, Portland, OR, 97201, USA")
    ]


def test_second_value_gets_next_index() -> None:
    metadata = {"EMAIL[HOME]": "a@example.com", "EMAIL[1:HOME]": "b@example.com"}
    assert free_index(metadata, "EMAIL", "home") == 2
    assert free_index(metadata, "EMAIL", "WORK") is None
    assert contact_field_keys(ContactField("EMAIL", "HOME", "c@example.com"), 2) == {
        "EMAIL[2:HOME]": "c@example.com"
    }


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("jane@example.com", "EMAIL"),
        ("https://example.com/jane", "URL"),
        ("www.example.com", "URL"),
        ("+1 (202) 555-1234", "TEL"),
        ("555-12", None),
        ("Met at school", None),
    ],
)
def test_detect_field(value, expected) -> None:
    assert detect_field(value) == expected


def test_match_value_normalizes_phones_and_case() -> None:
    def normalize(raw: str) -> str | None:
        digits = "".join(ch for ch in raw if ch.isdigit())
        return f"+1{digits}" if len(digits) == 10 else None

    assert match_value(ContactField("TEL", "CELL", "(202) 555-1234"), normalize) == (
        "TEL",
        "+12025551234",
    )
    assert match_value(ContactField("EMAIL", None, "Jane@Example.com")) == (
        "EMAIL",
        "jane@example.com",
    )
