"""Tests for revision stamps."""

from datetime import datetime, timezone

from kith.domain import RevisionClock
from kith.domain.revision import is_newer


def _clock(*moments: datetime) -> RevisionClock:
    it = iter(moments)
    return RevisionClock(now=lambda: next(it))


def test_stamp_format() -> None:
    clock = _clock(datetime(2024, 3, 5, 7, 8, 9, tzinfo=timezone.utc))
    assert clock.next() == "20240305T070809Z"


def test_same_second_writes_still_move_forward() -> None:
    moment = datetime(2024, 3, 5, 7, 8, 9, tzinfo=timezone.utc)
    clock = _clock(moment, moment)
    first = clock.next()
    second = clock.next(first)
    assert second == "20240305T070810Z"
    assert is_newer(second, first)


def test_is_newer() -> None:
    assert is_newer("20240101T000001Z", "20240101T000000Z")
    assert not is_newer("20240101T000000Z", "20240101T000000Z")
    assert is_newer("20240101T000000Z", None)
    assert not is_newer(None, "20240101T000000Z")
