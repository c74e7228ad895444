"""In-memory record provider."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

type Row = dict[str, Any]


@dataclass(slots=True, frozen=True)
class WriteCall:
    operation: str
    payload: Row


class InMemoryProvider:
    """Dict-backed provider for mapping records addressed by ``key_field``.

    Every write is appended to ``writes`` so callers can inspect what an
    exchange did. ``read`` returns copies; duplicate keys loaded through
    ``records`` are kept as given so the engine can reject them.
    """

    def __init__(self, records: Iterable[Mapping[str, Any]] = (), *, key_field: str = "id") -> None:
        self.key_field = key_field
        self._rows: list[Row] = [dict(record) for record in records]
        self.writes: list[WriteCall] = []

    @property
    def rows(self) -> list[Row]:
        return [dict(row) for row in self._rows]

    def keys(self) -> set[Any]:
        return {row[self.key_field] for row in self._rows}

    async def read(self) -> list[Row]:
        return self.rows

    async def create(self, record: Mapping[str, Any]) -> Any:
        row = dict(record)
        self.writes.append(WriteCall("create", row))
        self._rows.append(row)
        return row[self.key_field]

    async def update(self, payload: Mapping[str, Any]) -> None:
        self.writes.append(WriteCall("update", dict(payload)))
        key = payload[self.key_field]
        for row in self._rows:
            if row[self.key_field] == key:
                row.update(payload)
                return
        raise KeyError(key)

    async def delete(self, record: Mapping[str, Any]) -> None:
        self.writes.append(WriteCall("delete", dict(record)))
        key = record[self.key_field]
        remaining = [row for row in self._rows if row[self.key_field] != key]
        if len(remaining) == len(self._rows):
            raise KeyError(key)
        self._rows = remaining

