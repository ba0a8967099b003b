from __future__ import annotations

from freebie_discordbot.scheduler import FreebieScheduler, RunGuard


def test_trigger_runs_and_releases_guard() -> None:
    calls: list[str] = []
    scheduler = FreebieScheduler(lambda: calls.append("run"), interval_hours=6)

    assert scheduler.trigger() is True
    assert scheduler.trigger() is True
    assert calls == ["run", "run"]
    assert scheduler.guard.running is False


def test_overlapping_trigger_is_skipped_not_queued() -> None:
    calls: list[str] = []
    scheduler = FreebieScheduler(lambda: None, interval_hours=6)

    def nested_run() -> None:
        calls.append("outer")
        assert scheduler.trigger() is False

    scheduler.run_once = nested_run

    assert scheduler.trigger() is True
    assert calls == ["outer"]


def test_failed_run_releases_guard() -> None:
    def boom() -> None:
        raise RuntimeError("unexpected")

    scheduler = FreebieScheduler(boom, interval_hours=6)

    assert scheduler.trigger() is True
    assert scheduler.guard.running is False


def test_compaction_shares_the_guard() -> None:
    guard = RunGuard()
    compactions: list[str] = []
    scheduler = FreebieScheduler(
        lambda: None,
        interval_hours=6,
        compact=lambda: compactions.append("compact"),
        guard=guard,
    )

    assert guard.try_acquire() is True
    assert scheduler.trigger_compaction() is False
    guard.release()
    assert scheduler.trigger_compaction() is True
    assert compactions == ["compact"]


def test_compaction_is_a_noop_without_retention() -> None:
    assert FreebieScheduler(lambda: None, interval_hours=6).trigger_compaction() is False


def test_build_registers_immediate_check_and_optional_compaction() -> None:
    plain = FreebieScheduler(lambda: None, interval_hours=2).build()
    with_compaction = FreebieScheduler(lambda: None, interval_hours=2, compact=lambda: None).build()

    assert [job.id for job in plain.get_jobs()] == ["freebie_check"]
    assert sorted(job.id for job in with_compaction.get_jobs()) == ["freebie_check", "state_compaction"]
