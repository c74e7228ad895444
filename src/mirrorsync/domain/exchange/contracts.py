"""Shared exchange contract components.

This module holds only:
- key and keyed-collection aliases
- enums used by the diff, the policy gate and the executor
- the ``NO_UPDATE`` sentinel returned by update deciders
"""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass
from enum import Enum, StrEnum
from typing import Final, Literal

type Key = Hashable
type KeyedCollection[R] = dict[Key, R]


class Side(StrEnum):
    """Which collection of a pass a record was read from."""

    SOURCE = "source"
    TARGET = "target"


class ActionKind(StrEnum):
    """Kind of write the executor may perform on the target."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class PolicyEffect(StrEnum):
    """Gate outcome for one action kind."""

    DO = "do"
    SKIP = "skip"
    INFO = "info"


class RunState(StrEnum):
    """Lifecycle of a single pass."""

    IDLE = "idle"
    READING = "reading"
    DIFFING = "diffing"
    ACTING = "acting"
    DONE = "done"
    FAILED = "failed"


class _NoUpdate(Enum):
    NO_UPDATE = "no-update"

    def __repr__(self) -> str:
        return "NO_UPDATE"

    def __bool__(self) -> bool:
        return False


NO_UPDATE: Final = _NoUpdate.NO_UPDATE
"""Decider result meaning the matched pair needs no change."""

type NoUpdate = Literal[_NoUpdate.NO_UPDATE]


def is_no_update(payload: object) -> bool:
    """Return whether a decider result means "leave the target alone".

    Besides the sentinel, ``None`` and ``False`` are accepted so deciders can
    return a plain falsy value. Any other result, an empty mapping included,
    is an update payload.
    """

    return payload is NO_UPDATE or payload is None or payload is False


@dataclass(slots=True, frozen=True, kw_only=True)
class PlannedAction[S, T, P]:
    """One diff entry handed to the gate and the executor."""

    kind: ActionKind
    key: Key
    source: S | None = None
    target: T | None = None
    payload: P | None = None

    def describe(self) -> str:
        """Human-readable description used by the info sink."""

        if self.kind is ActionKind.CREATE:
            return f'Item with key "{self.key}" will be created.'
        if self.kind is ActionKind.UPDATE:
            return f'Item with key "{self.key}" will be updated with data: {self.payload!r}'
        return f'Item with key "{self.key}" will be deleted.'
