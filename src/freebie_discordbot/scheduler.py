from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

COMPACTION_INTERVAL = timedelta(days=1)


class RunGuard:
    """Single-slot flag: at most one holder at a time, later callers are turned away."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()


class FreebieScheduler:
    """Run the check immediately and then on a fixed interval, never overlapping."""

    def __init__(
        self,
        run_once: Callable[[], object],
        *,
        interval_hours: float,
        compact: Callable[[], object] | None = None,
        guard: RunGuard | None = None,
    ) -> None:
        self.run_once = run_once
        self.interval_hours = interval_hours
        self.compact = compact
        self.guard = guard or RunGuard()
        self._scheduler: BlockingScheduler | None = None

    def trigger(self) -> bool:
        """Run one check unless one is already in progress. Returns True if it ran."""
        return self._guarded("check", self.run_once)

    def trigger_compaction(self) -> bool:
        if self.compact is None:
            return False
        return self._guarded("compaction", self.compact)

    def _guarded(self, name: str, job: Callable[[], object]) -> bool:
        if not self.guard.try_acquire():
            logger.warning(
                "Previous run still in progress; skipping %s. "
                "Make sure CHECK_INTERVAL_HOURS is long enough for a full check.",
                name,
            )
            return False

        started = time.monotonic()
        try:
            job()
        except Exception:  # noqa: BLE001
            logger.exception("Scheduled %s raised an exception", name)
        finally:
            self.guard.release()
        logger.debug("Scheduled %s finished in %.3fs", name, time.monotonic() - started)
        return True

    def build(self) -> BlockingScheduler:
        scheduler = BlockingScheduler(
            timezone=timezone.utc,
            job_defaults={"coalesce": True, "max_instances": 1},
        )
        now = datetime.now(timezone.utc)
        scheduler.add_job(
            self.trigger,
            trigger=IntervalTrigger(hours=self.interval_hours, timezone=timezone.utc),
            id="freebie_check",
            next_run_time=now,
            replace_existing=True,
        )
        if self.compact is not None:
            scheduler.add_job(
                self.trigger_compaction,
                trigger=IntervalTrigger(
                    seconds=COMPACTION_INTERVAL.total_seconds(),
                    timezone=timezone.utc,
                ),
                id="state_compaction",
                replace_existing=True,
            )
        return scheduler

    def start(self) -> None:
        """Block until interrupted."""
        self._scheduler = self.build()
        logger.info("Next checks every %g hour(s).", self.interval_hours)
        try:
            self._scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Scheduler stopped.")

    def stop(self) -> None:
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
