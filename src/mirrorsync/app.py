"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING, Any

from mirrorsync.adapters import open_provider
from mirrorsync.config import get_exchange_config, get_http_cache_config
from mirrorsync.domain.exchange import Exchange, mapping_strategy

if TYPE_CHECKING:
    from collections.abc import Sequence

    from mirrorsync.config import CacheConfig
    from mirrorsync.domain.exchange import (
        ExchangePolicy,
        ExchangeReport,
        ExchangeStrategy,
        InfoSink,
    )
    from mirrorsync.domain.ports import RecordProvider, RecordSource


log = getLogger(__name__)


async def sync_records[S, T](
    *,
    source: RecordSource[S],
    target: RecordProvider[T],
    strategy: ExchangeStrategy[S, T],
    policy: ExchangePolicy | None = None,
    max_concurrency: int | None = None,
    info_sink: InfoSink | None = None,
) -> ExchangeReport:
    """Run one exchange pass; unset options come from the environment config."""

    config = get_exchange_config()
    exchange = Exchange(
        source=source,
        target=target,
        strategy=strategy,
        policy=policy or config.policy,
        max_concurrency=max_concurrency or config.max_concurrency,
    )
    if info_sink is not None:
        exchange.info_sink = info_sink
    log.info(
        "Starting exchange: create=%s, update=%s, delete=%s, max_concurrency=%s",
        exchange.policy.create,
        exchange.policy.update,
        exchange.policy.delete,
        exchange.max_concurrency,
    )
    report = await exchange.run()
    if report.failures:
        log.warning("Exchange finished with %s failed write(s)", len(report.failures))
    return report


def sync_locations(
    source: str,
    target: str,
    *,
    key_field: str,
    target_key_field: str | None = None,
    fields: Sequence[str] | None = None,
    policy: ExchangePolicy | None = None,
    max_concurrency: int | None = None,
    http_cache: CacheConfig | None = None,
) -> ExchangeReport:
    """Synchronise two provider locations holding dict-shaped records."""

    cache = http_cache or get_http_cache_config()
    source_provider: RecordProvider[Any] = open_provider(
        source, key_field=key_field, http_cache=cache
    )
    target_provider: RecordProvider[Any] = open_provider(
        target, key_field=target_key_field or key_field, http_cache=cache
    )
    strategy = mapping_strategy(key_field, fields, target_key_field=target_key_field)
    return asyncio.run(
        sync_records(
            source=source_provider,
            target=target_provider,
            strategy=strategy,
            policy=policy,
            max_concurrency=max_concurrency,
        )
    )
