"""Revision stamps: UTC timestamps in the vCard REV form YYYYMMDDTHHMMSSZ."""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

REV_FORMAT = "%Y%m%dT%H%M%SZ"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_revision(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime(REV_FORMAT)


def is_newer(candidate: str | None, reference: str | None) -> bool:
    """Lexical comparison; a missing reference is older than any stamp."""
    if not candidate:
        return False
    if not reference:
        return True
    return candidate > reference


class RevisionClock:
    """Issues revision stamps that always move forward.

    When the wall clock has not passed the previous stamp (two writes in the
    same second, or a stamp from a skewed device), the previous stamp plus
    one second is used instead.
    """

    def __init__(self, now: Callable[[], datetime] = _utcnow) -> None:
        self._now = now

    def next(self, previous: str | None = None) -> str:
        stamp = format_revision(self._now())
        if previous and stamp <= previous:
            try:
                bumped = datetime.strptime(previous, REV_FORMAT) + timedelta(seconds=1)
            except ValueError:
                return stamp
            return bumped.strftime(REV_FORMAT)
        return stamp
