"""Record provider backed by a single SQLAlchemy table."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING, Any

from sqlalchemy import MetaData, Table, create_engine, delete, insert, select, update

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.engine import Engine

log = getLogger(__name__)

type Row = dict[str, Any]


class UnknownColumnError(KeyError):
    """Raised when a payload names a column the table does not have."""


def reflect_table(engine: Engine, name: str, *, schema: str | None = None) -> Table:
    """Load the definition of an existing table."""

    metadata = MetaData(schema=schema)
    return Table(name, metadata, autoload_with=engine)


class SqlAlchemyTableProvider:
    """Rows of ``table`` as dicts, addressed by ``key_column``.

    SQLAlchemy calls are blocking, so each one runs in a worker thread inside
    its own transaction (``engine.begin()``).
    """

    def __init__(self, engine: Engine, table: Table, *, key_column: str = "id") -> None:
        if key_column not in table.c:
            raise UnknownColumnError(key_column)
        self.engine = engine
        self.table = table
        self.key_column = key_column

    @classmethod
    def from_url(
        cls, url: str, table_name: str, *, key_column: str = "id"
    ) -> SqlAlchemyTableProvider:
        engine = create_engine(url, future=True)
        return cls(engine, reflect_table(engine, table_name), key_column=key_column)

    async def read(self) -> list[Row]:
        return await asyncio.to_thread(self._read)

    async def create(self, record: Mapping[str, Any]) -> Any:
        return await asyncio.to_thread(self._create, dict(record))

    async def update(self, payload: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self._update, dict(payload))

    async def delete(self, record: Mapping[str, Any]) -> None:
        await asyncio.to_thread(self._delete, record[self.key_column])

    def _read(self) -> list[Row]:
        with self.engine.connect() as connection:
            result = connection.execute(select(self.table))
            return [dict(row) for row in result.mappings()]

    def _create(self, row: Row) -> Any:
        values = self._columns(row)
        with self.engine.begin() as connection:
            result = connection.execute(insert(self.table).values(**values))
        primary_key = result.inserted_primary_key
        if primary_key and primary_key[0] is not None:
            return primary_key[0]
        return values.get(self.key_column)

    def _update(self, payload: Row) -> None:
        key = payload[self.key_column]
        values = {
            name: value
            for name, value in self._columns(payload).items()
            if name != self.key_column
        }
        if not values:
            log.debug("Nothing to update for %s=%r", self.key_column, key)
            return
        with self.engine.begin() as connection:
            result = connection.execute(
                update(self.table).where(self.table.c[self.key_column] == key).values(**values)
            )
        if result.rowcount == 0:
            raise LookupError(f"No row with {self.key_column}={key!r} in {self.table.name}")

    def _delete(self, key: Any) -> None:
        with self.engine.begin() as connection:
            result = connection.execute(
                delete(self.table).where(self.table.c[self.key_column] == key)
            )
        if result.rowcount == 0:
            raise LookupError(f"No row with {self.key_column}={key!r} in {self.table.name}")

    def _columns(self, row: Row) -> Row:
        unknown = sorted(set(row) - set(self.table.c.keys()))
        if unknown:
            raise UnknownColumnError(", ".join(unknown))
        return row
