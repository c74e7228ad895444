from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest

from mirrorsync.adapters.memory import InMemoryProvider
from mirrorsync.domain.exchange import NO_UPDATE, Exchange, Strategy

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

type Row = dict[str, Any]


def _decide_by_name(source: Mapping[str, Any], target: Mapping[str, Any]) -> object:
    if source["name"] == target["name"]:
        return NO_UPDATE
    return dict(source)


@pytest.fixture
def name_strategy() -> Strategy[Row, Row]:
    """Records keyed by ``id``; the whole source record is sent on a name change."""

    return Strategy(key=lambda record: record["id"], decide_update=_decide_by_name)


@pytest.fixture
def scenario_rows() -> tuple[list[Row], list[Row]]:
    source = [{"id": "1", "name": "A"}, {"id": "2", "name": "B"}]
    target = [{"id": "1", "name": "A"}, {"id": "3", "name": "C"}]
    return source, target


@pytest.fixture
def make_exchange(
    name_strategy: Strategy[Row, Row],
) -> Callable[[InMemoryProvider, InMemoryProvider], Exchange[Row, Row]]:
    def factory(source: InMemoryProvider, target: InMemoryProvider) -> Exchange[Row, Row]:
        return Exchange(source=source, target=target, strategy=name_strategy)

    return factory
