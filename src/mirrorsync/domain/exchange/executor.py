"""Apply gated diff entries to the target provider.

``do`` entries become one asyncio task each; ``execute`` gathers all of them
before returning, so a pass never finishes with writes still in flight and a
failing write never hides another one.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any, Protocol

from .contracts import ActionKind, PlannedAction, PolicyEffect
from .errors import ProviderWriteError
from .events import ItemCreated, ItemDeleted, ItemFailed, ItemUpdated
from .report import ExchangeReport

if TYPE_CHECKING:
    from collections.abc import Callable

    from mirrorsync.domain.ports.providers import RecordProvider

    from .diff import ExchangeDiff
    from .events import EventBus, ExchangeEvent
    from .policy import ExchangePolicy

log = getLogger(__name__)

type Action = PlannedAction[Any, Any, Any]


class InfoSink(Protocol):
    """Receives the actions an ``info`` policy would have performed."""

    def __call__(self, action: Action) -> None: ...


@dataclass(slots=True)
class LoggingInfoSink:
    """Default info sink writing one INFO line per planned action."""

    logger_name: str = "mirrorsync.plan"

    def __call__(self, action: Action) -> None:
        getLogger(self.logger_name).info(action.describe())


@dataclass(slots=True)
class ActionExecutor:
    target: RecordProvider[Any]
    policy: ExchangePolicy
    publish: Callable[[ExchangeEvent], None]
    convert: Callable[[Any], Any]
    info_sink: InfoSink = field(default_factory=LoggingInfoSink)
    max_concurrency: int | None = None

    async def execute(self, diff: ExchangeDiff, report: ExchangeReport) -> None:
        """Gate every diff entry and wait for all dispatched writes."""

        # Gate everything first so a failing info sink cannot leave writes running.
        writes: list[Action] = []
        for action in diff.actions():
            effect = self.policy.gate(action.kind)
            if effect is PolicyEffect.SKIP:
                report.skipped.append(action)
            elif effect is PolicyEffect.INFO:
                self.info_sink(action)
                report.logged.append(action)
            else:
                writes.append(action)

        if not writes:
            return
        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        pending = [
            asyncio.create_task(self._dispatch(action, report, semaphore)) for action in writes
        ]
        results = await asyncio.gather(*pending, return_exceptions=True)
        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            # Only subscriber errors get here; provider errors are reported per item.
            raise BaseExceptionGroup("Event handlers failed while acting", errors)

    async def _dispatch(
        self,
        action: Action,
        report: ExchangeReport,
        semaphore: asyncio.Semaphore | None,
    ) -> None:
        if semaphore is None:
            event = await self._write(action, report)
        else:
            async with semaphore:
                event = await self._write(action, report)
        self.publish(event)

    async def _write(self, action: Action, report: ExchangeReport) -> ExchangeEvent:
        try:
            if action.kind is ActionKind.CREATE:
                record = self.convert(action.source)
                result = await self.target.create(record)
                report.created.append(action.key)
                return ItemCreated(key=action.key, record=record, result=result)
            if action.kind is ActionKind.UPDATE:
                await self.target.update(action.payload)
                report.updated.append(action.key)
                return ItemUpdated(key=action.key, payload=action.payload)
            await self.target.delete(action.target)
            report.deleted.append(action.key)
            return ItemDeleted(key=action.key, record=action.target)
        except Exception as exc:
            error = ProviderWriteError(action.kind, action.key)
            error.__cause__ = exc
            log.warning("%s: %s", error, exc)
            report.failures.append(error)
            return ItemFailed(error=error)
