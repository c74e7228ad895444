from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest

from mirrorsync.adapters.memory import InMemoryProvider
from mirrorsync.domain.exchange import (
    NO_UPDATE,
    DuplicateKeyError,
    Exchange,
    ExchangePolicy,
    ItemCreated,
    ItemDeleted,
    ItemUpdated,
    PlannedAction,
    ProviderReadError,
    RunAfter,
    RunState,
    Side,
    Strategy,
)
from tests.support.providers import BrokenSource, FlakyProvider, ProviderDown, SlowProvider

if TYPE_CHECKING:
    from collections.abc import Callable

type Row = dict[str, Any]
type ExchangeFactory = Callable[[InMemoryProvider, InMemoryProvider], Exchange[Row, Row]]


def _record_events(exchange: Exchange[Row, Row]) -> list[str]:
    seen: list[str] = []
    exchange.subscribe(
        run_before=lambda _e: seen.append("run_before"),
        run_after=lambda _e: seen.append("run_after"),
        source_data_ready=lambda _e: seen.append("source_data_ready"),
        target_data_ready=lambda _e: seen.append("target_data_ready"),
        item_created=lambda _e: seen.append("item_created"),
        item_updated=lambda _e: seen.append("item_updated"),
        item_deleted=lambda _e: seen.append("item_deleted"),
        item_failed=lambda _e: seen.append("item_failed"),
    )
    return seen


def test_scenario_with_do_policy(
    make_exchange: ExchangeFactory, scenario_rows: tuple[list[Row], list[Row]]
) -> None:
    source_rows, target_rows = scenario_rows
    target = InMemoryProvider(target_rows)
    exchange = make_exchange(InMemoryProvider(source_rows), target)
    exchange.set_policy(create="do", update="do", delete="do")
    created: list[ItemCreated] = []
    deleted: list[ItemDeleted] = []
    updated: list[ItemUpdated] = []
    exchange.subscribe(item_created=created.append, item_deleted=deleted.append)
    exchange.subscribe(item_updated=updated.append)

    report = asyncio.run(exchange.run())

    assert report.ok
    assert report.created == ["2"]
    assert report.updated == []
    assert report.deleted == ["3"]
    assert report.unchanged == ["1"]
    assert target.keys() == {"1", "2"}
    assert [event.record for event in created] == [{"id": "2", "name": "B"}]
    assert [event.record for event in deleted] == [{"id": "3", "name": "C"}]
    assert updated == []


def test_scenario_with_info_policy(
    make_exchange: ExchangeFactory, scenario_rows: tuple[list[Row], list[Row]]
) -> None:
    source_rows, target_rows = scenario_rows
    target = InMemoryProvider(target_rows)
    exchange = make_exchange(InMemoryProvider(source_rows), target)
    planned: list[PlannedAction[Any, Any, Any]] = []
    exchange.info_sink = planned.append
    seen = _record_events(exchange)

    report = asyncio.run(exchange.run())

    assert target.writes == []
    assert report.state is RunState.DONE
    assert seen[0] == "run_before"
    assert seen[-1] == "run_after"
    assert sorted(seen[1:3]) == ["source_data_ready", "target_data_ready"]
    assert len(seen) == 4
    assert sorted(action.key for action in planned) == ["2", "3"]


def test_default_info_sink_uses_logging(
    make_exchange: ExchangeFactory,
    scenario_rows: tuple[list[Row], list[Row]],
    caplog: pytest.LogCaptureFixture,
) -> None:
    source_rows, target_rows = scenario_rows
    exchange = make_exchange(InMemoryProvider(source_rows), InMemoryProvider(target_rows))

    with caplog.at_level("INFO", logger="mirrorsync.plan"):
        asyncio.run(exchange.run())

    messages = [
        record.getMessage() for record in caplog.records if record.name == "mirrorsync.plan"
    ]
    assert 'Item with key "2" will be created.' in messages
    assert 'Item with key "3" will be deleted.' in messages


def test_second_pass_is_a_no_op(
    make_exchange: ExchangeFactory, scenario_rows: tuple[list[Row], list[Row]]
) -> None:
    source_rows, target_rows = scenario_rows
    source_rows = [*source_rows, {"id": "4", "name": "D"}]
    target_rows = [*target_rows, {"id": "4", "name": "old"}]
    target = InMemoryProvider(target_rows)
    exchange = make_exchange(InMemoryProvider(source_rows), target)
    exchange.policy = ExchangePolicy.execute_all()

    first = asyncio.run(exchange.run())
    writes_after_first = len(target.writes)
    second = asyncio.run(exchange.run())

    assert first.total_writes == 3
    assert first.updated == ["4"]
    assert second.total_writes == 0
    assert sorted(second.unchanged) == ["1", "2", "4"]
    assert len(target.writes) == writes_after_first


@pytest.mark.parametrize("side", [Side.SOURCE, Side.TARGET])
def test_duplicate_keys_abort_without_writes(
    make_exchange: ExchangeFactory, side: Side
) -> None:
    rows = [{"id": "1", "name": "Item 1"}]
    duplicated = [{"id": "1", "name": "Item 1"}, {"id": "1", "name": "Item 1 Duplicate"}]
    source = InMemoryProvider(duplicated if side is Side.SOURCE else rows)
    target = InMemoryProvider(duplicated if side is Side.TARGET else [{"id": "9", "name": "Z"}])
    exchange = make_exchange(source, target)
    exchange.policy = ExchangePolicy.execute_all()
    seen = _record_events(exchange)

    with pytest.raises(DuplicateKeyError) as exc:
        asyncio.run(exchange.run())

    assert exc.value.key == "1"
    assert exc.value.side is side
    assert target.writes == []
    assert exchange.state is RunState.FAILED
    assert "run_after" not in seen


def test_read_failure_is_wrapped_and_fatal(name_strategy: Strategy[Row, Row]) -> None:
    target = InMemoryProvider([{"id": "1", "name": "A"}])
    exchange = Exchange(source=BrokenSource(), target=target, strategy=name_strategy)
    exchange.policy = ExchangePolicy.execute_all()

    with pytest.raises(ProviderReadError) as exc:
        asyncio.run(exchange.run())

    assert exc.value.side is Side.SOURCE
    assert isinstance(exc.value.__cause__, ProviderDown)
    assert target.writes == []
    assert exchange.state is RunState.FAILED


def test_write_failures_do_not_stop_the_pass(make_exchange: ExchangeFactory) -> None:
    source = InMemoryProvider([{"id": str(index), "name": "new"} for index in range(5)])
    target = FlakyProvider([{"id": "9", "name": "gone"}], failing_keys={"1", "3"})
    exchange = make_exchange(source, target)
    exchange.policy = ExchangePolicy.execute_all()
    seen = _record_events(exchange)

    report = asyncio.run(exchange.run())

    assert sorted(report.created) == ["0", "2", "4"]
    assert report.deleted == ["9"]
    assert sorted(failure.key for failure in report.failures) == ["1", "3"]
    assert not report.ok
    assert report.state is RunState.DONE
    assert seen.count("item_failed") == 2
    assert seen[-1] == "run_after"


def test_run_after_waits_for_slow_writes(make_exchange: ExchangeFactory) -> None:
    source = InMemoryProvider([{"id": str(index), "name": "n"} for index in range(10)])
    target = SlowProvider(delay=0.02)
    exchange = make_exchange(source, target)
    exchange.set_policy(create="do")
    completed_at_run_after: list[int] = []
    exchange.subscribe(run_after=lambda _e: completed_at_run_after.append(target.completed))

    asyncio.run(exchange.run())

    assert completed_at_run_after == [10]
    assert target.peak_in_flight > 1


def test_no_update_sentinel_suppresses_write_and_event() -> None:
    source = InMemoryProvider([{"id": "1", "name": "changed"}])
    target = InMemoryProvider([{"id": "1", "name": "original"}])
    strategy: Strategy[Row, Row] = Strategy(
        key=lambda r: r["id"], decide_update=lambda _s, _t: NO_UPDATE
    )
    exchange = Exchange(source=source, target=target, strategy=strategy)
    exchange.policy = ExchangePolicy.execute_all()
    updated: list[ItemUpdated] = []
    exchange.subscribe(item_updated=updated.append)

    report = asyncio.run(exchange.run())

    assert target.writes == []
    assert updated == []
    assert report.unchanged == ["1"]


def test_skip_policy_produces_no_writes_or_item_events(
    make_exchange: ExchangeFactory, scenario_rows: tuple[list[Row], list[Row]]
) -> None:
    source_rows, target_rows = scenario_rows
    target = InMemoryProvider(target_rows)
    exchange = make_exchange(InMemoryProvider(source_rows), target)
    exchange.set_policy(create="skip", update="skip", delete="skip")
    seen = _record_events(exchange)

    report = asyncio.run(exchange.run())

    assert target.writes == []
    assert not any(name.startswith("item_") for name in seen)
    assert len(report.skipped) == 2


def test_set_policy_merges_with_previous_calls(make_exchange: ExchangeFactory) -> None:
    exchange = make_exchange(InMemoryProvider(), InMemoryProvider())

    exchange.set_policy(create="do").set_policy(delete="skip")

    assert exchange.policy == ExchangePolicy().merged(create="do", delete="skip")


def test_unsubscribe_stops_notifications(
    make_exchange: ExchangeFactory, scenario_rows: tuple[list[Row], list[Row]]
) -> None:
    source_rows, target_rows = scenario_rows
    exchange = make_exchange(InMemoryProvider(source_rows), InMemoryProvider(target_rows))
    seen: list[RunAfter] = []
    subscription = exchange.subscribe(run_after=seen.append)

    asyncio.run(exchange.run())
    subscription.cancel()
    asyncio.run(exchange.run())

    assert len(seen) == 1


def test_subscribe_rejects_unknown_names(make_exchange: ExchangeFactory) -> None:
    exchange = make_exchange(InMemoryProvider(), InMemoryProvider())

    with pytest.raises(TypeError, match="item_moved"):
        exchange.subscribe(item_moved=print)


def test_repeated_runs_start_from_fresh_collections(make_exchange: ExchangeFactory) -> None:
    source = InMemoryProvider([{"id": "1", "name": "A"}])
    target = InMemoryProvider([{"id": "1", "name": "A"}])
    exchange = make_exchange(source, target)

    for _ in range(3):
        report = asyncio.run(exchange.run())
        assert report.unchanged == ["1"]
        assert report.state is RunState.DONE


def test_cross_type_exchange_converts_before_create() -> None:
    source = InMemoryProvider([{"uid": 7, "title": "Seven"}], key_field="uid")
    target = InMemoryProvider([{"ref": "7", "label": "old"}], key_field="ref")

    def decide(src: Row, tgt: Row) -> object:
        if src["title"] == tgt["label"]:
            return NO_UPDATE
        return {"ref": str(src["uid"]), "label": src["title"]}

    strategy: Strategy[Row, Row] = Strategy(
        key=lambda r: str(r["uid"]),
        target_key_of=lambda r: r["ref"],
        decide_update=decide,
        converter=lambda r: {"ref": str(r["uid"]), "label": r["title"]},
    )
    exchange = Exchange(source=source, target=target, strategy=strategy)
    exchange.policy = ExchangePolicy.execute_all()

    report = asyncio.run(exchange.run())

    assert report.updated == ["7"]
    assert target.rows == [{"ref": "7", "label": "Seven"}]


def test_handler_errors_surface_after_all_writes(make_exchange: ExchangeFactory) -> None:
    source = InMemoryProvider([{"id": str(index), "name": "n"} for index in range(3)])
    target = SlowProvider(delay=0.01)
    exchange = make_exchange(source, target)
    exchange.set_policy(create="do")

    def explode(_event: ItemCreated) -> None:
        raise RuntimeError("subscriber bug")

    exchange.subscribe(item_created=explode)

    with pytest.raises(ExceptionGroup) as exc:
        asyncio.run(exchange.run())

    assert target.completed == 3
    assert len(exc.value.exceptions) == 3
    assert exchange.state is RunState.FAILED


def test_max_concurrency_must_be_positive(name_strategy: Strategy[Row, Row]) -> None:
    with pytest.raises(ValueError, match="positive"):
        Exchange(
            source=InMemoryProvider(),
            target=InMemoryProvider(),
            strategy=name_strategy,
            max_concurrency=0,
        )


def test_decider_error_marks_the_pass_failed(scenario_rows: tuple[list[Row], list[Row]]) -> None:
    source_rows, target_rows = scenario_rows
    target = InMemoryProvider(target_rows)

    def broken_decider(_source: Row, _target: Row) -> object:
        raise ValueError("cannot compare")

    exchange = Exchange(
        source=InMemoryProvider(source_rows),
        target=target,
        strategy=Strategy(key=lambda record: record["id"], decide_update=broken_decider),
        policy=ExchangePolicy.execute_all(),
    )
    seen = _record_events(exchange)

    with pytest.raises(ValueError, match="cannot compare"):
        asyncio.run(exchange.run())

    assert exchange.state is RunState.FAILED
    assert target.writes == []
    assert "run_after" not in seen


def test_run_before_handler_error_marks_the_pass_failed(
    make_exchange: ExchangeFactory, scenario_rows: tuple[list[Row], list[Row]]
) -> None:
    source_rows, target_rows = scenario_rows
    target = InMemoryProvider(target_rows)
    exchange = make_exchange(InMemoryProvider(source_rows), target)
    exchange.set_policy(create="do", update="do", delete="do")
    asyncio.run(exchange.run())
    assert exchange.state is RunState.DONE

    def refuse(_event: object) -> None:
        raise RuntimeError("not now")

    exchange.subscribe(run_before=refuse)

    with pytest.raises(RuntimeError, match="not now"):
        asyncio.run(exchange.run())

    assert exchange.state is RunState.FAILED


def test_failing_info_sink_leaves_no_writes_in_flight() -> None:
    target = SlowProvider([{"id": "9", "name": "Z"}], delay=0.05)
    exchange = Exchange(
        source=InMemoryProvider([{"id": "1", "name": "A"}, {"id": "2", "name": "B"}]),
        target=target,
        strategy=Strategy(key=lambda record: record["id"], decide_update=lambda _s, _t: None),
        policy=ExchangePolicy().merged(create="do", delete="info"),
    )

    def sink(_action: PlannedAction[Any, Any, Any]) -> None:
        raise RuntimeError("sink unavailable")

    exchange.info_sink = sink

    async def scenario() -> int:
        with pytest.raises(RuntimeError, match="sink unavailable"):
            await exchange.run()
        return len(asyncio.all_tasks()) - 1

    assert asyncio.run(scenario()) == 0
    assert target.peak_in_flight == 0
    assert exchange.state is RunState.FAILED
