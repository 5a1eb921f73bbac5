"""Tests for the structured metadata key codec."""

from kith.domain import ParsedKey, format_key, parse_key


def test_plain_key() -> None:
    assert parse_key("FN") == ParsedKey(key="FN")


def test_subkey_only() -> None:
    assert parse_key("N.GN") == ParsedKey(key="N", subkey="GN")


def test_selector_without_index() -> None:
    assert parse_key("RELATED[parent]") == ParsedKey(key="RELATED", selector="parent")


def test_index_and_selector() -> None:
    assert parse_key("RELATED[2:parent]") == ParsedKey(key="RELATED", index=2, selector="parent")


def test_index_selector_and_subkey() -> None:
    assert parse_key("ADR[1:HOME].STREET") == ParsedKey(
        key="ADR", index=1, selector="HOME", subkey="STREET"
    )


def test_index_only() -> None:
    assert parse_key("TEL[3:]") == ParsedKey(key="TEL", index=3)


def test_non_numeric_prefix_is_part_of_selector() -> None:
    parsed = parse_key("X[a:b]")
    assert parsed.index is None
    assert parsed.selector == "a:b"


def test_unparseable_keys_come_back_whole() -> None:
    assert parse_key("TEL[HOME") == ParsedKey(key="TEL[HOME")
    assert parse_key("TEL[HOME]x") == ParsedKey(key="TEL[HOME]x")
    assert parse_key("") == ParsedKey(key="")


def test_non_string_input_does_not_raise() -> None:
    assert parse_key(42) == ParsedKey(key="42")


def test_format_key_is_inverse() -> None:
    for raw in ("FN", "N.GN", "RELATED[parent]", "RELATED[2:parent]", "ADR[1:HOME].STREET", "TEL[3:]"):
        assert format_key(*parse_key(raw)) == raw
