"""Reconciliation core: make a target collection mirror a source collection.

Flow of one pass:
1) read both sides concurrently
2) build keyed collections (duplicate keys are fatal)
3) diff into create/update/delete sets
4) gate each action kind through the policy
5) execute gated writes and wait for all of them
6) notify subscribers along the way
"""

from __future__ import annotations

from .contracts import (
    NO_UPDATE,
    ActionKind,
    Key,
    KeyedCollection,
    PlannedAction,
    PolicyEffect,
    RunState,
    Side,
)
from .diff import ExchangeDiff, compute_diff
from .engine import Exchange
from .errors import DuplicateKeyError, ExchangeError, ProviderReadError, ProviderWriteError
from .events import (
    EventBus,
    ExchangeEvent,
    ItemCreated,
    ItemDeleted,
    ItemFailed,
    ItemUpdated,
    RunAfter,
    RunBefore,
    SourceDataReady,
    Subscription,
    TargetDataReady,
)
from .executor import ActionExecutor, InfoSink, LoggingInfoSink
from .keyed import build_keyed_collection
from .policy import ExchangePolicy
from .report import ExchangeReport
from .strategy import ExchangeStrategy, Strategy, changed_fields, field_key, mapping_strategy

__all__ = [
    "NO_UPDATE",
    "ActionExecutor",
    "ActionKind",
    "DuplicateKeyError",
    "EventBus",
    "Exchange",
    "ExchangeDiff",
    "ExchangeError",
    "ExchangeEvent",
    "ExchangePolicy",
    "ExchangeReport",
    "ExchangeStrategy",
    "InfoSink",
    "ItemCreated",
    "ItemDeleted",
    "ItemFailed",
    "ItemUpdated",
    "Key",
    "KeyedCollection",
    "LoggingInfoSink",
    "PlannedAction",
    "PolicyEffect",
    "ProviderReadError",
    "ProviderWriteError",
    "RunAfter",
    "RunBefore",
    "RunState",
    "Side",
    "SourceDataReady",
    "Strategy",
    "Subscription",
    "TargetDataReady",
    "build_keyed_collection",
    "changed_fields",
    "compute_diff",
    "field_key",
    "mapping_strategy",
]
