"""Exchange defaults read from the environment."""

from __future__ import annotations

from dataclasses import dataclass, field

from mirrorsync.domain.exchange.policy import ExchangePolicy, coerce_effect

from .env import optional_env_var, optional_positive_int
from .errors import ConfigurationError

POLICY_ENV_VARS = {
    "create": "MIRRORSYNC_CREATE",
    "update": "MIRRORSYNC_UPDATE",
    "delete": "MIRRORSYNC_DELETE",
}
MAX_CONCURRENCY_ENV_VAR = "MIRRORSYNC_MAX_CONCURRENCY"


@dataclass(frozen=True, slots=True)
class ExchangeConfig:
    policy: ExchangePolicy = field(default_factory=ExchangePolicy)
    max_concurrency: int | None = None


def get_exchange_config() -> ExchangeConfig:
    """Build the exchange configuration; unset variables keep the dry-run defaults."""

    policy = ExchangePolicy()
    for kind, env_name in POLICY_ENV_VARS.items():
        raw = optional_env_var(env_name)
        if raw is None:
            continue
        try:
            policy = policy.merged(**{kind: coerce_effect(raw)})
        except ValueError as exc:
            raise ConfigurationError(f"{env_name}: {exc}") from exc
    return ExchangeConfig(
        policy=policy,
        max_concurrency=optional_positive_int(MAX_CONCURRENCY_ENV_VAR),
    )
