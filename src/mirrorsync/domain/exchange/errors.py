"""Error types raised or reported by the exchange engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .contracts import ActionKind, Key, Side


class ExchangeError(RuntimeError):
    """Base class for all exchange failures."""


class DuplicateKeyError(ExchangeError):
    """Two records from the same side resolved to the same key."""

    def __init__(self, key: Key, side: Side) -> None:
        super().__init__(f'Duplicate key "{key}" found in {side} data.')
        self.key = key
        self.side = side


class ProviderReadError(ExchangeError):
    """A provider failed to read its collection; the pass cannot continue."""

    def __init__(self, side: Side) -> None:
        super().__init__(f"Reading {side} data failed")
        self.side = side


class ProviderWriteError(ExchangeError):
    """A single create/update/delete call failed on the target provider.

    The provider exception is kept as ``__cause__``.
    """

    def __init__(self, kind: ActionKind, key: Key) -> None:
        super().__init__(f'Failed to {kind} item with key "{key}"')
        self.kind = kind
        self.key = key

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__
