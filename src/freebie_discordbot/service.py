from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from freebie_discordbot.filters import filter_new_items
from freebie_discordbot.models import FreebieItem, PendingFreebie
from freebie_discordbot.notifiers import (
    DeliveryError,
    Notifier,
    build_discord_embeds,
    render_embed_text,
)
from freebie_discordbot.sources import FetchResult, Source
from freebie_discordbot.store import NotifiedState, StateStore
from freebie_discordbot.utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunStats:
    fetched: int = 0
    new: int = 0
    delivered: int = 0
    recorded: int = 0
    source_errors: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def fetch_all(sources: list[Source]) -> list[FetchResult]:
    """Fetch every source concurrently; results keep the order of ``sources``."""
    if not sources:
        return []
    with ThreadPoolExecutor(
        max_workers=len(sources),
        thread_name_prefix="fetch",
    ) as pool:
        futures = [pool.submit(source.fetch_safely) for source in sources]
        return [future.result() for future in futures]


def merge_results(results: list[FetchResult]) -> list[FreebieItem]:
    items: list[FreebieItem] = []
    for result in results:
        if result.ok:
            logger.info("Source %s returned %d free items", result.source_id, len(result.items))
        items.extend(result.items)
    return items


class FreebieService:
    def __init__(
        self,
        *,
        sources: list[Source],
        store: StateStore,
        notifier: Notifier | None,
        dry_run: bool = False,
        preview_callback: Callable[[dict[str, Any]], None] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.sources = sources
        self.store = store
        self.notifier = notifier
        self.dry_run = dry_run
        self.preview_callback = preview_callback or print_embed_preview
        self.clock = clock

    def collect(self, stats: RunStats | None = None) -> list[FreebieItem]:
        results = fetch_all(self.sources)
        if stats is not None:
            for result in results:
                if not result.ok:
                    stats.source_errors.append(f"{result.source_id}: {result.error}")
        return merge_results(results)

    def run_once(self) -> RunStats:
        stats = RunStats()
        state = self.store.load()

        items = self.collect(stats)
        stats.fetched = len(items)

        pending = filter_new_items(items, state)
        stats.new = len(pending)
        if not pending:
            logger.info("No free games found at this time.")
            return stats

        embeds = build_discord_embeds(pending)

        if self.dry_run:
            for embed in embeds:
                self.preview_callback(embed)
            return stats

        if self.notifier is None:
            message = "notifier is required when dry_run is false"
            logger.error(message)
            stats.errors.append(message)
            return stats

        try:
            stats.delivered = self.notifier.deliver(embeds)
        except DeliveryError as exc:
            stats.delivered = exc.delivered
            message = f"delivery failed after {exc.delivered} embed(s): {exc}"
            logger.error("Error during check: %s", message)
            stats.errors.append(message)
            return stats

        stats.recorded = self._record(state, pending)
        self.store.save(state)
        logger.info("Sent %d embed(s) to Discord.", stats.delivered)
        return stats

    def _record(self, state: NotifiedState, pending: list[PendingFreebie]) -> int:
        notified_at = self.clock()
        recorded = 0
        for entry in pending:
            if state.record(entry.internal_key, notified_at):
                recorded += 1
        return recorded


def print_embed_preview(embed: dict[str, Any]) -> None:
    print("[DRY RUN] WOULD POST EMBED:")
    print(render_embed_text(embed))
    print("")


@dataclass(slots=True)
class CompactionStats:
    removed: int = 0
    kept: int = 0
    saved: bool = True


def compact_state(
    store: StateStore,
    *,
    max_age: timedelta,
    now: datetime | None = None,
) -> CompactionStats:
    """Drop notified records older than ``max_age``.

    The state file is only rewritten when something was removed; ``saved`` is
    false when that rewrite failed.
    """
    state = store.load()
    compacted = state.pruned(max_age=max_age, now=now or utc_now())
    stats = CompactionStats(removed=len(state) - len(compacted), kept=len(compacted))
    if stats.removed:
        stats.saved = store.save(compacted)
    if stats.saved:
        logger.info("Compacted notified state | removed=%d kept=%d", stats.removed, stats.kept)
    else:
        logger.error("Compacted notified state could not be saved | removed=%d", stats.removed)
    return stats
