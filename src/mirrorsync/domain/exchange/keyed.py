"""Build keyed views of one side of a pass."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .contracts import Side
from .errors import DuplicateKeyError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from .contracts import Key, KeyedCollection


def build_keyed_collection[R](
    records: Iterable[R],
    key_of: Callable[[R], Key],
    *,
    side: Side = Side.SOURCE,
) -> KeyedCollection[R]:
    """Map every record to its identity key.

    Raises ``DuplicateKeyError`` on the first key seen twice; the caller must
    not proceed with a partially built collection.
    """

    collection: KeyedCollection[R] = {}
    for record in records:
        key = key_of(record)
        if key in collection:
            raise DuplicateKeyError(key, side)
        collection[key] = record
    return collection
