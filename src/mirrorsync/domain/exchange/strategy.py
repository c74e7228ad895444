"""Entity-specific strategies injected into the exchange engine.

An integrator supplies key extraction for each side, the update decision for
matched pairs and, when the two sides hold different record types, a
source-to-target conversion applied before ``create``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, cast, runtime_checkable

from .contracts import NO_UPDATE

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .contracts import Key, NoUpdate


@runtime_checkable
class ExchangeStrategy[S, T](Protocol):
    """Strategy bundle the engine uses to look at records."""

    def source_key(self, record: S) -> Key: ...

    def target_key(self, record: T) -> Key: ...

    def decide_update(self, source: S, target: T) -> object: ...

    def convert(self, record: S) -> T: ...


type UpdateDecider[S, T] = Callable[[S, T], object]


def _identity(record: Any) -> Any:
    return record


@dataclass(slots=True, frozen=True)
class Strategy[S, T]:
    """Assemble an ``ExchangeStrategy`` from plain callables.

    ``target_key`` defaults to ``key`` and ``convert`` to the identity, which
    covers the common case of both sides sharing one record type.
    """

    key: Callable[[S], Key]
    decide_update: UpdateDecider[S, T]
    target_key_of: Callable[[T], Key] | None = None
    converter: Callable[[S], T] | None = None

    def source_key(self, record: S) -> Key:
        return self.key(record)

    def target_key(self, record: T) -> Key:
        if self.target_key_of is None:
            return self.key(cast("S", record))
        return self.target_key_of(record)

    def convert(self, record: S) -> T:
        if self.converter is None:
            return cast("T", _identity(record))
        return self.converter(record)


def field_key(name: str) -> Callable[[Mapping[str, Any]], Key]:
    """Key extractor reading ``name`` from mapping records."""

    def key_of(record: Mapping[str, Any]) -> Key:
        return record[name]

    return key_of


def changed_fields(
    key_field: str,
    fields: Sequence[str] | None = None,
    *,
    target_key_field: str | None = None,
) -> UpdateDecider[Mapping[str, Any], Mapping[str, Any]]:
    """Decider for mapping records that sends only the differing fields.

    ``fields`` limits the comparison; by default every source field except the
    key is compared. The payload always carries the target key so providers
    can address the row.
    """

    addressed_by = target_key_field or key_field

    def decide(
        source: Mapping[str, Any], target: Mapping[str, Any]
    ) -> dict[str, Any] | NoUpdate:
        compared = fields if fields is not None else [f for f in source if f != key_field]
        changes = {
            name: source.get(name)
            for name in compared
            if name != key_field and source.get(name) != target.get(name)
        }
        if not changes:
            return NO_UPDATE
        return {addressed_by: target[addressed_by], **changes}

    return decide


def mapping_strategy(
    key_field: str,
    fields: Sequence[str] | None = None,
    *,
    target_key_field: str | None = None,
) -> Strategy[Mapping[str, Any], Mapping[str, Any]]:
    """Strategy for dict-shaped records, as read by the bundled providers."""

    target_field = target_key_field or key_field

    def convert(record: Mapping[str, Any]) -> Mapping[str, Any]:
        if target_field == key_field:
            return dict(record)
        converted = {name: value for name, value in record.items() if name != key_field}
        converted[target_field] = record[key_field]
        return converted

    return Strategy(
        key=field_key(key_field),
        decide_update=changed_fields(key_field, fields, target_key_field=target_field),
        target_key_of=field_key(target_field),
        converter=convert,
    )
