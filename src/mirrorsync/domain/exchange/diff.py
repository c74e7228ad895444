"""Three-way diff between the keyed source and target collections."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from .contracts import ActionKind, PlannedAction, is_no_update

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .contracts import Key, KeyedCollection
    from .strategy import UpdateDecider

log = getLogger(__name__)

type Action = PlannedAction[Any, Any, Any]


@dataclass(slots=True)
class ExchangeDiff:
    """Create/update/delete sets of one pass.

    The sets are disjoint; ``to_update`` and ``unchanged`` together hold every
    key present on both sides. Ordering inside each list carries no meaning.
    """

    to_create: list[Action] = field(default_factory=list["Action"])
    to_update: list[Action] = field(default_factory=list["Action"])
    to_delete: list[Action] = field(default_factory=list["Action"])
    unchanged: list[Key] = field(default_factory=list["Key"])

    def actions(self) -> Iterator[Action]:
        yield from self.to_create
        yield from self.to_update
        yield from self.to_delete

    def __len__(self) -> int:
        return len(self.to_create) + len(self.to_update) + len(self.to_delete)


def compute_diff[S, T](
    source: KeyedCollection[S],
    target: KeyedCollection[T],
    decide_update: UpdateDecider[S, T],
) -> ExchangeDiff:
    """Compare both sides and ask ``decide_update`` about every matched pair."""

    diff = ExchangeDiff()
    for key, source_record in source.items():
        if key not in target:
            diff.to_create.append(
                PlannedAction(kind=ActionKind.CREATE, key=key, source=source_record)
            )
            continue

        target_record = target[key]
        payload = decide_update(source_record, target_record)
        if is_no_update(payload):
            log.debug('Skip condition met for item with key "%s". No update needed.', key)
            diff.unchanged.append(key)
            continue
        diff.to_update.append(
            PlannedAction(
                kind=ActionKind.UPDATE,
                key=key,
                source=source_record,
                target=target_record,
                payload=payload,
            )
        )

    for key, target_record in target.items():
        if key not in source:
            diff.to_delete.append(
                PlannedAction(kind=ActionKind.DELETE, key=key, target=target_record)
            )
    return diff
