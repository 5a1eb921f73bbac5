"""Curator rules: named, phase-tagged transformations, and the registry that runs them."""

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Protocol

from kith.application.dto import ChangeRecord, CuratorSetting
from kith.domain import ContactDocument

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Execution phases, in run order."""

    IMMEDIATE = "immediate"
    IMPROVEMENT = "improvement"
    UPCOMING = "upcoming"


PHASE_ORDER = (Phase.IMMEDIATE, Phase.IMPROVEMENT, Phase.UPCOMING)


class Curator(Protocol):
    name: str
    phase: Phase
    setting_name: str
    description: str
    default_enabled: bool

    def process(self, document: ContactDocument) -> ChangeRecord | None:
        """Apply the rule to one document. None means nothing to change."""
        ...


class CuratorRegistry:
    """Holds curator rules and their enabled flags. One instance per pipeline."""

    def __init__(self, enabled: dict[str, bool] | None = None) -> None:
        self._curators: dict[str, Curator] = {}
        self._enabled: dict[str, bool] = {}
        self._overrides = dict(enabled or {})

    def register(self, curator: Curator) -> None:
        if curator.name in self._curators:
            raise ValueError(f"Curator '{curator.name}' is already registered")
        self._curators[curator.name] = curator
        self._enabled[curator.name] = self._overrides.get(
            curator.setting_name, self._overrides.get(curator.name, curator.default_enabled)
        )

    def get(self, name: str) -> Curator:
        try:
            return self._curators[name]
        except KeyError:
            raise KeyError(f"Unknown curator '{name}'") from None

    def names(self) -> list[str]:
        return list(self._curators)

    def curators(self, phase: Phase) -> list[Curator]:
        return [c for c in self._curators.values() if c.phase == phase]

    def is_enabled(self, name: str) -> bool:
        self.get(name)
        return self._enabled[name]

    def set_enabled(self, name: str, enabled: bool) -> None:
        self.get(name)
        self._enabled[name] = bool(enabled)

    @contextmanager
    def suspended(self, name: str) -> Iterator[bool]:
        """Disable a curator for the duration of the block; yields its prior state."""
        was_enabled = self.is_enabled(name)
        self.set_enabled(name, False)
        try:
            yield was_enabled
        finally:
            self.set_enabled(name, was_enabled)

    def settings(self) -> list[CuratorSetting]:
        return [
            CuratorSetting(
                name=c.name,
                phase=c.phase.value,
                setting_name=c.setting_name,
                description=c.description,
                default_enabled=c.default_enabled,
                enabled=self._enabled[c.name],
            )
            for c in self._curators.values()
        ]

    def run_phase(
        self, documents: Iterable[ContactDocument], phase: Phase
    ) -> list[ChangeRecord]:
        """Run every enabled curator of phase on every document; collect change records.

        A curator that raises is logged and skipped for that document only.
        """
        records: list[ChangeRecord] = []
        curators = [c for c in self.curators(phase) if self._enabled[c.name]]
        for document in documents:
            for curator in curators:
                record = self._process(curator, document)
                if record is not None:
                    records.append(record)
        return records

    def run_curator(
        self, name: str, documents: Iterable[ContactDocument]
    ) -> list[ChangeRecord]:
        """Run one curator over documents, regardless of its enabled flag."""
        curator = self.get(name)
        records = []
        for document in documents:
            record = self._process(curator, document)
            if record is not None:
                records.append(record)
        return records

    @staticmethod
    def _process(curator: Curator, document: ContactDocument) -> ChangeRecord | None:
        try:
            return curator.process(document)
        except Exception:
            logger.exception(
                "Curator %s failed on %s (%s)", curator.name, document.ref, document.name
            )
            return None
