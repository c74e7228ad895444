"""Per-action-kind policy gate.

Every action kind maps to one effect:
- ``do``: perform the write and publish the item event
- ``skip``: neither write nor notify
- ``info``: describe the action through the info sink, no write

Unset kinds default to ``info`` so a freshly built exchange is a dry run.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from .contracts import ActionKind, PolicyEffect

type EffectLike = PolicyEffect | str


def coerce_effect(value: EffectLike) -> PolicyEffect:
    """Return ``value`` as a ``PolicyEffect`` or raise ``ValueError``."""

    if isinstance(value, PolicyEffect):
        return value
    try:
        return PolicyEffect(value.strip().lower())
    except (AttributeError, ValueError) as exc:
        allowed = ", ".join(effect.value for effect in PolicyEffect)
        raise ValueError(f"Invalid policy effect {value!r} (expected one of: {allowed})") from exc


@dataclass(slots=True, frozen=True)
class ExchangePolicy:
    create: PolicyEffect = PolicyEffect.INFO
    update: PolicyEffect = PolicyEffect.INFO
    delete: PolicyEffect = PolicyEffect.INFO

    def gate(self, kind: ActionKind) -> PolicyEffect:
        """Return the effect configured for ``kind``."""

        if kind is ActionKind.CREATE:
            return self.create
        if kind is ActionKind.UPDATE:
            return self.update
        return self.delete

    def merged(
        self,
        *,
        create: EffectLike | None = None,
        update: EffectLike | None = None,
        delete: EffectLike | None = None,
    ) -> ExchangePolicy:
        """Return a copy with only the given kinds replaced."""

        changes: dict[str, PolicyEffect] = {}
        if create is not None:
            changes["create"] = coerce_effect(create)
        if update is not None:
            changes["update"] = coerce_effect(update)
        if delete is not None:
            changes["delete"] = coerce_effect(delete)
        return replace(self, **changes)

    @classmethod
    def execute_all(cls) -> ExchangePolicy:
        return cls(create=PolicyEffect.DO, update=PolicyEffect.DO, delete=PolicyEffect.DO)
