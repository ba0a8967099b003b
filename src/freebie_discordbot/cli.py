from __future__ import annotations

import argparse
import logging
import sys
from datetime import timedelta

from dotenv import find_dotenv, load_dotenv

from freebie_discordbot.config import (
    MAX_RETENTION_DAYS,
    AppConfig,
    ConfigError,
    RuntimeSettings,
    load_config,
    resolve_runtime_settings,
)
from freebie_discordbot.filters import filter_new_items
from freebie_discordbot.logging_config import setup_logging
from freebie_discordbot.notifiers import DiscordWebhookNotifier
from freebie_discordbot.scheduler import FreebieScheduler
from freebie_discordbot.service import FreebieService, RunStats, compact_state
from freebie_discordbot.sources import Source, SourceRegistrationError, create_sources
from freebie_discordbot.store import JsonStateStore
from freebie_discordbot.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="freebie-bot",
        description="Watch Epic Games and Steam for free games and announce them on Discord.",
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to an optional config YAML file (default: config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        help="Override config log level (e.g. INFO, DEBUG)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("run", help="Check once and post new freebies")
    subparsers.add_parser("watch", help="Check now and then every CHECK_INTERVAL_HOURS")
    subparsers.add_parser("dry-run", help="Check once and print what would be posted")

    backfill = subparsers.add_parser(
        "backfill",
        help="Mark current freebies as notified without posting",
    )
    backfill.add_argument(
        "--mark-seen",
        action="store_true",
        help="Required safety flag for backfill operation",
    )

    prune = subparsers.add_parser("prune", help="Forget notified keys older than N days")
    prune.add_argument("--days", type=int, required=True, help="Maximum record age in days")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv(find_dotenv(usecwd=True))

    try:
        app_config = load_config(args.config)
    except ConfigError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2

    setup_logging(args.log_level or app_config.log_level)
    store = JsonStateStore(app_config.storage.path)

    if args.command == "prune":
        if not 1 <= args.days <= MAX_RETENTION_DAYS:
            parser.error(f"prune --days must be between 1 and {MAX_RETENTION_DAYS}")
        result = compact_state(store, max_age=timedelta(days=args.days))
        return 0 if result.saved else 1

    try:
        sources = _build_sources(app_config)
    except SourceRegistrationError as exc:
        print(f"Config error: {exc}", file=sys.stderr)
        return 2

    if args.command == "backfill":
        if not args.mark_seen:
            parser.error("backfill requires --mark-seen")
        return _run_backfill(store=store, sources=sources)

    if args.command == "dry-run":
        service = FreebieService(
            sources=sources,
            store=store,
            notifier=None,
            dry_run=True,
        )
        return _log_stats(service.run_once())

    try:
        runtime = resolve_runtime_settings(app_config)
    except ConfigError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    service = _build_service(app_config, runtime, sources, store)

    if args.command == "watch":
        scheduler = FreebieScheduler(
            lambda: _log_stats(service.run_once()),
            interval_hours=runtime.interval_hours,
            compact=_build_compaction(app_config, store),
        )
        scheduler.start()
        return 0

    return _log_stats(service.run_once())


def _build_sources(app_config: AppConfig) -> list[Source]:
    return create_sources(app_config.sources)


def _build_service(
    app_config: AppConfig,
    runtime: RuntimeSettings,
    sources: list[Source],
    store: JsonStateStore,
) -> FreebieService:
    notifier = DiscordWebhookNotifier(
        webhook_url=runtime.webhook_url,
        mention_role_id=runtime.mention_role_id,
        timeout_seconds=app_config.discord.timeout_seconds,
    )
    return FreebieService(sources=sources, store=store, notifier=notifier)


def _build_compaction(app_config: AppConfig, store: JsonStateStore):
    retention_days = app_config.storage.retention_days
    if retention_days is None:
        return None
    return lambda: compact_state(store, max_age=timedelta(days=retention_days))


def _log_stats(stats: RunStats) -> int:
    logger.info(
        "Run complete | fetched=%d new=%d delivered=%d recorded=%d source_errors=%d errors=%d",
        stats.fetched,
        stats.new,
        stats.delivered,
        stats.recorded,
        len(stats.source_errors),
        len(stats.errors),
    )
    return 0 if stats.ok else 1


def _run_backfill(*, store: JsonStateStore, sources: list[Source]) -> int:
    service = FreebieService(sources=sources, store=store, notifier=None)
    state = store.load()
    stats = RunStats()
    items = service.collect(stats)

    notified_at = utc_now()
    marked = 0
    for entry in filter_new_items(items, state):
        if state.record(entry.internal_key, notified_at):
            marked += 1

    saved = store.save(state) if marked else True
    logger.info(
        "Backfill complete | marked_seen=%d source_errors=%d",
        marked,
        len(stats.source_errors),
    )
    return 0 if saved and not stats.source_errors else 1


if __name__ == "__main__":
    raise SystemExit(main())
