from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from mirrorsync.app import sync_locations
from mirrorsync.config import (
    CacheConfig,
    ConfigurationError,
    configure_logging,
    get_exchange_config,
    get_http_cache_config,
)
from mirrorsync.domain.exchange import PolicyEffect

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from mirrorsync.domain.exchange import ExchangePolicy

log = logging.getLogger(__name__)

_EFFECT_CHOICES = [effect.value for effect in PolicyEffect]


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Make a target record collection mirror a source"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sync = subparsers.add_parser("sync", help="Run one synchronisation pass")
    sync.add_argument(
        "source", help="Source location (.jsonl path, http(s) URL or db URL#table)"
    )
    sync.add_argument("target", help="Target location, same forms as the source")
    sync.add_argument("--key", required=True, help="Identity field of source records")
    sync.add_argument(
        "--target-key",
        help="Identity field of target records (defaults to --key)",
    )
    sync.add_argument(
        "--fields",
        type=_parse_fields,
        help="Comma-separated fields to compare (defaults to every source field)",
    )
    for kind in ("create", "update", "delete"):
        sync.add_argument(
            f"--{kind}",
            choices=_EFFECT_CHOICES,
            help=f"Policy for {kind} actions (defaults to config, then 'info')",
        )
    sync.add_argument(
        "--max-concurrency",
        type=int,
        help="Maximum number of writes in flight",
    )
    sync.add_argument(
        "--http-cache-ttl",
        type=int,
        metavar="SECONDS",
        help="Cache HTTP collection reads for SECONDS (defaults to config, then off)",
    )
    sync.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    return parser.parse_args(list(argv))


def _parse_fields(value: str) -> list[str]:
    fields = [name.strip() for name in value.split(",") if name.strip()]
    if not fields:
        raise argparse.ArgumentTypeError("--fields needs at least one field name")
    return fields


def _resolve_policy(args: argparse.Namespace) -> ExchangePolicy:
    policy = get_exchange_config().policy
    return policy.merged(create=args.create, update=args.update, delete=args.delete)


def _resolve_http_cache(args: argparse.Namespace) -> CacheConfig | None:
    if args.http_cache_ttl is None:
        return get_http_cache_config()
    if args.http_cache_ttl < 1:
        raise ValueError("--http-cache-ttl must be positive")
    return CacheConfig(ttl_seconds=args.http_cache_ttl)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        if parsed_args.max_concurrency is not None and parsed_args.max_concurrency < 1:
            raise ValueError("--max-concurrency must be positive")  # noqa: TRY301
        policy = _resolve_policy(parsed_args)
        http_cache = _resolve_http_cache(parsed_args)
    except (ConfigurationError, ValueError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        report = sync_locations(
            parsed_args.source,
            parsed_args.target,
            key_field=parsed_args.key,
            target_key_field=parsed_args.target_key,
            fields=parsed_args.fields,
            policy=policy,
            max_concurrency=parsed_args.max_concurrency,
            http_cache=http_cache,
        )
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)

    log.info("Sync finished: %s", report.summary())
    for failure in report.failures:
        log.error("%s: %s", failure, failure.cause)
    if report.failures:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
