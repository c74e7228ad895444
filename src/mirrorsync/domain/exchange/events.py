"""Typed lifecycle and item notifications.

Events form a closed set of frozen dataclasses. ``EventBus`` dispatches an
event to the handlers registered for its exact class, synchronously and in
registration order. ``subscribe`` returns a ``Subscription`` that removes
exactly the registrations made by that call, even if the same handler object
was registered elsewhere as well.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from .contracts import Key
    from .errors import ProviderWriteError
    from .report import ExchangeReport


@dataclass(slots=True, frozen=True)
class RunBefore:
    """A pass is about to start reading."""


@dataclass(slots=True, frozen=True)
class RunAfter:
    """Every action of the pass has resolved."""

    report: ExchangeReport


@dataclass(slots=True, frozen=True)
class SourceDataReady:
    count: int


@dataclass(slots=True, frozen=True)
class TargetDataReady:
    count: int


@dataclass(slots=True, frozen=True)
class ItemCreated:
    key: Key
    record: Any
    result: object = None


@dataclass(slots=True, frozen=True)
class ItemUpdated:
    key: Key
    payload: Any


@dataclass(slots=True, frozen=True)
class ItemDeleted:
    key: Key
    record: Any


@dataclass(slots=True, frozen=True)
class ItemFailed:
    error: ProviderWriteError


type ExchangeEvent = (
    RunBefore
    | RunAfter
    | SourceDataReady
    | TargetDataReady
    | ItemCreated
    | ItemUpdated
    | ItemDeleted
    | ItemFailed
)

type Handler[E] = Callable[[E], object]

EVENT_TYPES: dict[str, type[ExchangeEvent]] = {
    "run_before": RunBefore,
    "run_after": RunAfter,
    "source_data_ready": SourceDataReady,
    "target_data_ready": TargetDataReady,
    "item_created": ItemCreated,
    "item_updated": ItemUpdated,
    "item_deleted": ItemDeleted,
    "item_failed": ItemFailed,
}


@dataclass(slots=True, eq=False)
class _Registration:
    event_type: type[ExchangeEvent]
    handler: Handler[Any]


@dataclass(slots=True, eq=False)
class Subscription:
    """Capability returned by ``EventBus.subscribe``; ``cancel`` is single-use."""

    _bus: EventBus
    _registrations: tuple[_Registration, ...]
    _active: bool = True

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        if not self._active:
            return
        self._active = False
        for registration in self._registrations:
            self._bus._remove(registration)  # noqa: SLF001

    def __enter__(self) -> Subscription:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> Literal[False]:
        self.cancel()
        return False


@dataclass(slots=True)
class EventBus:
    _handlers: dict[type[ExchangeEvent], list[_Registration]] = field(
        default_factory=dict["type[ExchangeEvent]", "list[_Registration]"]
    )

    def subscribe(self, handlers: Mapping[type[ExchangeEvent], Handler[Any]]) -> Subscription:
        """Register ``handlers`` keyed by event class."""

        known = set(EVENT_TYPES.values())
        for event_type in handlers:
            if event_type not in known:
                raise TypeError(f"Unknown event type: {event_type!r}")

        registrations: list[_Registration] = []
        for event_type, handler in handlers.items():
            registration = _Registration(event_type=event_type, handler=handler)
            self._handlers.setdefault(event_type, []).append(registration)
            registrations.append(registration)
        return Subscription(self, tuple(registrations))

    def publish(self, event: ExchangeEvent) -> None:
        # Copy so handlers may cancel subscriptions while being dispatched.
        for registration in tuple(self._handlers.get(type(event), ())):
            registration.handler(event)

    def handler_count(self, event_type: type[ExchangeEvent] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, ()))
        return sum(len(registrations) for registrations in self._handlers.values())

    def _remove(self, registration: _Registration) -> None:
        registrations = self._handlers.get(registration.event_type)
        if not registrations:
            return
        self._handlers[registration.event_type] = [
            existing for existing in registrations if existing is not registration
        ]
