"""Result and record types passed between the engine, curators and driver."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PendingUpdate:
    """A write proposed for another document, applied later through the normal write path."""

    ref: str
    field: str
    value: str
    reason: str = ""


@dataclass
class SyncResult:
    success: bool = True
    errors: list[str] = field(default_factory=list)
    changed: bool = False
    pending_updates: list[PendingUpdate] = field(default_factory=list)


@dataclass(frozen=True)
class ChangeRecord:
    """What a curator rule did to one document."""

    curator: str
    phase: str
    ref: str
    message: str
    pending_updates: tuple[PendingUpdate, ...] = ()


@dataclass
class ReconcileReport:
    iterations: int = 0
    converged: bool = False
    hit_iteration_cap: bool = False
    changes: list[ChangeRecord] = field(default_factory=list)
    changed_per_iteration: list[int] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    write_back_changes: list[ChangeRecord] = field(default_factory=list)


@dataclass(frozen=True)
class CuratorSetting:
    name: str
    phase: str
    setting_name: str
    description: str
    default_enabled: bool
    enabled: bool
