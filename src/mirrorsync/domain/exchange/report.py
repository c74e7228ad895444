"""Outcome of one exchange pass."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from .contracts import RunState

if TYPE_CHECKING:
    from .contracts import Key, PlannedAction
    from .errors import ProviderWriteError


@dataclass(slots=True)
class ExchangeReport:
    """Keys written, logged or skipped during a pass, plus per-item failures."""

    state: RunState = RunState.IDLE
    created: list[Key] = field(default_factory=list["Key"])
    updated: list[Key] = field(default_factory=list["Key"])
    deleted: list[Key] = field(default_factory=list["Key"])
    unchanged: list[Key] = field(default_factory=list["Key"])
    logged: list[PlannedAction[Any, Any, Any]] = field(
        default_factory=list["PlannedAction[Any, Any, Any]"]
    )
    skipped: list[PlannedAction[Any, Any, Any]] = field(
        default_factory=list["PlannedAction[Any, Any, Any]"]
    )
    failures: list[ProviderWriteError] = field(default_factory=list["ProviderWriteError"])

    @property
    def ok(self) -> bool:
        return self.state is RunState.DONE and not self.failures

    @property
    def total_writes(self) -> int:
        return len(self.created) + len(self.updated) + len(self.deleted)

    def summary(self) -> str:
        return (
            f"state={self.state}, created={len(self.created)}, updated={len(self.updated)}, "
            f"deleted={len(self.deleted)}, unchanged={len(self.unchanged)}, "
            f"logged={len(self.logged)}, skipped={len(self.skipped)}, "
            f"failed={len(self.failures)}"
        )
