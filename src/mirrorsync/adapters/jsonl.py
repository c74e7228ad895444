"""JSON-lines file provider.

Each line holds one JSON object. Reads parse the whole file; writes rewrite it
atomically through a temporary file in the same directory.
"""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
import threading
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

log = getLogger(__name__)

type Row = dict[str, Any]


class JsonLinesError(ValueError):
    """Raised when a line of the file is not a JSON object."""


class JsonLinesProvider:
    def __init__(self, path: Path | str, *, key_field: str = "id") -> None:
        self.path = Path(path)
        self.key_field = key_field
        self._lock = threading.Lock()

    async def read(self) -> list[Row]:
        return await asyncio.to_thread(self._load)

    async def create(self, record: Mapping[str, Any]) -> Any:
        row = dict(record)
        await asyncio.to_thread(self._mutate, lambda rows: [*rows, row])
        return row[self.key_field]

    async def update(self, payload: Mapping[str, Any]) -> None:
        key = payload[self.key_field]

        def apply(rows: list[Row]) -> list[Row]:
            matched = False
            for row in rows:
                if row.get(self.key_field) == key:
                    row.update(payload)
                    matched = True
            if not matched:
                raise KeyError(key)
            return rows

        await asyncio.to_thread(self._mutate, apply)

    async def delete(self, record: Mapping[str, Any]) -> None:
        key = record[self.key_field]

        def apply(rows: list[Row]) -> list[Row]:
            remaining = [row for row in rows if row.get(self.key_field) != key]
            if len(remaining) == len(rows):
                raise KeyError(key)
            return remaining

        await asyncio.to_thread(self._mutate, apply)

    def _load(self) -> list[Row]:
        if not self.path.exists():
            log.debug("%s does not exist yet, treating as empty", self.path)
            return []
        rows: list[Row] = []
        with self.path.open(encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                value = json.loads(line)
                if not isinstance(value, dict):
                    raise JsonLinesError(f"{self.path}:{line_number}: expected a JSON object")
                rows.append(value)
        return rows

    def _mutate(self, change: Callable[[list[Row]], list[Row]]) -> None:
        with self._lock:
            self._rewrite(change(self._load()))

    def _rewrite(self, rows: list[Row]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                for row in rows:
                    handle.write(json.dumps(row, ensure_ascii=False) + "\n")
            Path(tmp_name).replace(self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
