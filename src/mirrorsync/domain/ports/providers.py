"""Ports for reading and writing record collections."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence


@runtime_checkable
class RecordSource[R](Protocol):
    """Minimal contract for the source side of an exchange."""

    async def read(self) -> Sequence[R]: ...


@runtime_checkable
class RecordProvider[R](RecordSource[R], Protocol):
    """Read/write contract for the target side of an exchange.

    ``update`` and ``delete`` receive partial records; providers address the
    stored record through whatever identity fields the payload carries.
    """

    async def create(self, record: R) -> object: ...

    async def update(self, payload: Any) -> None: ...

    async def delete(self, record: Any) -> None: ...
