"""Orchestrator for one-way record exchange.

The engine composes injected collaborators but knows nothing about concrete
record shapes or storage. A pass runs:
1) publish ``RunBefore``
2) read source and target concurrently and build keyed collections
3) compute the diff
4) gate and execute actions, waiting for every write
5) publish ``RunAfter``
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

from .contracts import RunState, Side
from .diff import compute_diff
from .errors import ProviderReadError
from .events import (
    EVENT_TYPES,
    EventBus,
    RunAfter,
    RunBefore,
    SourceDataReady,
    TargetDataReady,
)
from .executor import ActionExecutor, InfoSink, LoggingInfoSink
from .keyed import build_keyed_collection
from .policy import ExchangePolicy
from .report import ExchangeReport

if TYPE_CHECKING:
    from collections.abc import Callable

    from mirrorsync.domain.ports.providers import RecordProvider, RecordSource

    from .contracts import Key, KeyedCollection
    from .events import Handler, Subscription
    from .policy import EffectLike
    from .strategy import ExchangeStrategy

log = getLogger(__name__)


@dataclass(slots=True)
class Exchange[S, T]:
    """Make ``target`` mirror ``source`` under ``strategy`` and ``policy``."""

    source: RecordSource[S]
    target: RecordProvider[T]
    strategy: ExchangeStrategy[S, T]
    policy: ExchangePolicy = field(default_factory=ExchangePolicy)
    info_sink: InfoSink = field(default_factory=LoggingInfoSink)
    max_concurrency: int | None = None
    events: EventBus = field(default_factory=EventBus)
    state: RunState = RunState.IDLE

    def __post_init__(self) -> None:
        if self.max_concurrency is not None and self.max_concurrency < 1:
            raise ValueError("max_concurrency must be a positive integer")

    def set_policy(
        self,
        *,
        create: EffectLike | None = None,
        update: EffectLike | None = None,
        delete: EffectLike | None = None,
    ) -> Exchange[S, T]:
        """Merge the given effects into the current policy."""

        self.policy = self.policy.merged(create=create, update=update, delete=delete)
        return self

    def subscribe(self, **handlers: Handler[Any] | None) -> Subscription:
        """Register handlers by event name (``run_before``, ``item_created``, ...).

        ``None`` values are ignored so callers can pass optional handlers
        through unchanged.
        """

        unknown = sorted(set(handlers) - set(EVENT_TYPES))
        if unknown:
            raise TypeError(f"Unknown event name(s): {', '.join(unknown)}")
        return self.events.subscribe(
            {EVENT_TYPES[name]: handler for name, handler in handlers.items() if handler}
        )

    async def run(self) -> ExchangeReport:
        """Run one full pass; returns once every gated write has resolved."""

        report = ExchangeReport()
        self._transition(report, RunState.IDLE)
        try:
            await self._run_phases(report)
        except BaseException:
            self._transition(report, RunState.FAILED)
            raise

        log.info("Exchange finished: %s", report.summary())
        self.events.publish(RunAfter(report=report))
        return report

    async def _run_phases(self, report: ExchangeReport) -> None:
        self.events.publish(RunBefore())

        self._transition(report, RunState.READING)
        source_data, target_data = await self._read_both()

        self._transition(report, RunState.DIFFING)
        diff = compute_diff(source_data, target_data, self.strategy.decide_update)
        report.unchanged.extend(diff.unchanged)
        log.info(
            "Diff ready: create=%s, update=%s, delete=%s, unchanged=%s",
            len(diff.to_create),
            len(diff.to_update),
            len(diff.to_delete),
            len(diff.unchanged),
        )

        self._transition(report, RunState.ACTING)
        executor = ActionExecutor(
            target=self.target,
            policy=self.policy,
            publish=self.events.publish,
            convert=self.strategy.convert,
            info_sink=self.info_sink,
            max_concurrency=self.max_concurrency,
        )
        await executor.execute(diff, report)
        self._transition(report, RunState.DONE)

    async def _read_both(self) -> tuple[KeyedCollection[S], KeyedCollection[T]]:
        source_task = asyncio.create_task(
            self._read_side(self.source, self.strategy.source_key, Side.SOURCE, SourceDataReady)
        )
        target_task = asyncio.create_task(
            self._read_side(self.target, self.strategy.target_key, Side.TARGET, TargetDataReady)
        )
        tasks = (source_task, target_task)
        try:
            await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        for task in tasks:
            error = None if task.cancelled() else task.exception()
            if error is not None:
                raise error
        return source_task.result(), target_task.result()

    async def _read_side[R](
        self,
        provider: RecordSource[R],
        key_of: Callable[[R], Key],
        side: Side,
        ready: Callable[[int], SourceDataReady | TargetDataReady],
    ) -> KeyedCollection[R]:
        try:
            records = await provider.read()
        except Exception as exc:
            raise ProviderReadError(side) from exc
        collection = build_keyed_collection(records, key_of, side=side)
        log.debug("Read %s %s records", len(collection), side)
        self.events.publish(ready(len(collection)))
        return collection

    def _transition(self, report: ExchangeReport, state: RunState) -> None:
        self.state = state
        report.state = state

