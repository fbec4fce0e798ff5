from dataclasses import asdict

import pytest

from tasktime.errors import ConflictError, InvalidInputError, NotFoundError


def test_start_sets_running_and_first_started(timer, store, clock):
    snap = timer.start("t1", "u1")

    assert snap.is_running is True
    assert snap.active_start_at == clock.now
    assert snap.first_started_at == clock.now
    assert snap.live_elapsed_seconds == 0

    task = store.get_task("t1")
    assert task.is_running is True
    assert task.active_start_at == clock.now


def test_first_started_at_never_overwritten(timer, store, clock):
    first = clock.now
    timer.start("t1", "u1")
    clock.advance(minutes=5)
    timer.stop("t1", "u1")
    clock.advance(hours=1)
    timer.start("t1", "u1")

    task = store.get_task("t1")
    assert task.first_started_at == first
    assert task.active_start_at == clock.now


def test_start_on_running_task_conflicts_without_changes(timer, store, clock):
    timer.start("t1", "u1")
    before = asdict(store.get_task("t1"))
    clock.advance(seconds=30)

    with pytest.raises(ConflictError, match="already running"):
        timer.start("t1", "u1")

    assert asdict(store.get_task("t1")) == before


def test_stop_on_stopped_task_conflicts_without_changes(timer, store):
    before = asdict(store.get_task("t1"))

    with pytest.raises(ConflictError, match="not running"):
        timer.stop("t1", "u1", pages_completed=2)

    assert asdict(store.get_task("t1")) == before
    assert store.work_logs_for_task("t1") == []


def test_stop_after_125_seconds(timer, store, clock):
    timer.start("t1", "u1")
    clock.advance(seconds=125)

    snap = timer.stop("t1", "u1", pages_completed=3)

    assert snap.is_running is False
    assert snap.active_start_at is None
    assert snap.total_seconds_spent == 125
    assert snap.total_minutes_spent == 2
    assert snap.pages_completed == 3
    assert snap.last_stopped_at == clock.now

    logs = store.work_logs_for_task("t1")
    assert len(logs) == 1
    assert logs[0].duration_minutes == 2
    assert logs[0].pages_completed == 3
    assert logs[0].user_id == "u1"
    assert logs[0].stopped_at == clock.now
    assert (logs[0].stopped_at - logs[0].started_at).total_seconds() == 125
    assert snap.work_log == logs[0]


def test_short_session_logs_at_least_one_minute(timer, store, clock):
    timer.start("t1", "u1")
    clock.advance(seconds=10)
    snap = timer.stop("t1", "u1")

    assert store.work_logs_for_task("t1")[0].duration_minutes == 1
    assert snap.total_seconds_spent == 10
    assert snap.total_minutes_spent == 0


def test_half_minute_rounds_up(timer, store, clock):
    timer.start("t1", "u1")
    clock.advance(seconds=150)
    timer.stop("t1", "u1")

    assert store.work_logs_for_task("t1")[0].duration_minutes == 3


def test_multiple_sessions_accumulate(timer, store, clock):
    durations = [125, 59, 3600, 1]
    for seconds in durations:
        timer.start("t1", "u1")
        clock.advance(seconds=seconds)
        snap = timer.stop("t1", "u1")
        assert snap.is_running == (snap.active_start_at is not None)
        clock.advance(minutes=10)

    task = store.get_task("t1")
    assert task.total_seconds_spent == sum(durations)
    assert task.total_minutes_spent == sum(durations) // 60
    assert len(store.work_logs_for_task("t1")) == len(durations)


def test_pages_and_remarks_overwritten_only_when_supplied(timer, store, clock):
    timer.start("t1", "u1")
    clock.advance(minutes=2)
    timer.stop("t1", "u1", pages_completed=4, remarks="  chapter 1 keyed ")

    timer.start("t1", "u1")
    clock.advance(minutes=2)
    snap = timer.stop("t1", "u1")

    assert snap.pages_completed == 4
    assert snap.remarks == "chapter 1 keyed"
    logs = store.work_logs_for_task("t1")
    assert logs[1].pages_completed is None
    assert logs[1].remarks is None

    timer.start("t1", "u1")
    clock.advance(minutes=2)
    snap = timer.stop("t1", "u1", pages_completed=0, remarks="redo")
    assert snap.pages_completed == 0
    assert snap.remarks == "redo"


def test_clock_skew_counts_as_zero(timer, store, clock):
    timer.start("t1", "u1")
    clock.advance(seconds=-30)

    snap = timer.stop("t1", "u1")

    assert snap.total_seconds_spent == 0
    log = store.work_logs_for_task("t1")[0]
    assert log.stopped_at >= log.started_at
    assert log.duration_minutes == 1


def test_snapshot_derives_live_elapsed(timer, clock):
    timer.start("t1", "u1")
    clock.advance(seconds=95)

    snap = timer.snapshot("t1")
    assert snap.is_running is True
    assert snap.live_elapsed_seconds == 95

    clock.advance(seconds=5)
    assert timer.snapshot("t1").live_elapsed_seconds == 100


def test_snapshot_of_stopped_task_has_no_live_time(timer):
    assert timer.snapshot("t1").live_elapsed_seconds == 0


def test_unknown_task_is_not_found(timer):
    with pytest.raises(NotFoundError):
        timer.start("missing", "u1")
    with pytest.raises(NotFoundError):
        timer.stop("missing", "u1")
    with pytest.raises(NotFoundError):
        timer.snapshot("missing")


@pytest.mark.parametrize("pages", [-1, 2.5, "3", True])
def test_invalid_pages_rejected_before_mutation(timer, store, clock, pages):
    timer.start("t1", "u1")
    clock.advance(minutes=1)

    with pytest.raises(InvalidInputError):
        timer.stop("t1", "u1", pages_completed=pages)

    assert store.get_task("t1").is_running is True
    assert store.work_logs_for_task("t1") == []


@pytest.mark.parametrize("bad_id", ["", "   ", "has space", None, "x" * 65])
def test_malformed_ids_rejected(timer, bad_id):
    with pytest.raises(InvalidInputError):
        timer.start(bad_id, "u1")
    with pytest.raises(InvalidInputError):
        timer.start("t1", bad_id)


def test_oversized_remarks_rejected(timer, clock):
    timer.start("t1", "u1")
    with pytest.raises(InvalidInputError):
        timer.stop("t1", "u1", remarks="x" * 2001)
