"""Unit tests for the drift-correcting scheduler."""
from candle_feed.scheduler import Scheduler
from conftest import RES_5M, T0, FakeClock


def noop():
    pass


def test_next_delay_targets_front_run_before_boundary(timers):
    clock = FakeClock(T0 + 190_500)
    sched = Scheduler(clock=clock, timer_factory=timers)
    assert sched.next_delay(RES_5M) == 109_250


def test_quarter_guard_pushes_to_following_boundary(timers):
    # 50s before the front-run point: under a quarter bar, so skip ahead one bar
    clock = FakeClock(T0 + RES_5M - 250 - 50_000)
    sched = Scheduler(clock=clock, timer_factory=timers)

    assert sched.next_delay(RES_5M) == 350_000
    assert sched.next_delay(RES_5M, guard=False) == 50_000


def test_right_after_front_run_wakeup_targets_next_bar(timers):
    clock = FakeClock(T0 - 200)
    sched = Scheduler(clock=clock, timer_factory=timers)
    assert sched.next_delay(RES_5M) == RES_5M - 50


def test_delay_is_always_positive(timers):
    sched = Scheduler(clock=FakeClock(T0 - 100), timer_factory=timers)
    assert sched.next_delay(RES_5M, guard=False) == 1
    for offset in range(0, RES_5M, 997):
        assert sched.next_delay(RES_5M, now=T0 + offset) > 0
    assert sched.delay_until_close(T0 - RES_5M, RES_5M, now=T0 + 5_000) == 1
    assert sched.arm(-500, noop) == 1


def test_arming_replaces_pending_timer(timers):
    sched = Scheduler(clock=FakeClock(T0 + 1_000), timer_factory=timers)

    sched.arm(1_000, noop)
    sched.arm_next(RES_5M, noop)

    first, second = timers.timers
    assert first.cancelled and first.started
    assert second.started and not second.cancelled
    assert second.daemon is True
    assert second.interval == (RES_5M - 1_000 - 250) / 1000.0
    assert timers.pending == [second]
    assert sched.armed


def test_cancel(timers):
    sched = Scheduler(clock=FakeClock(T0), timer_factory=timers)
    sched.arm(10, noop)
    sched.cancel()
    assert timers.pending == []
    assert not sched.armed
    assert sched.pending_delay_ms is None


def test_lag_detection():
    sched = Scheduler(clock=FakeClock(T0 + RES_5M + 1_234))
    lag = sched.check_lag(T0, RES_5M)
    assert lag.lag_ms == 1_234
    assert lag.opentime == T0
    assert sched.check_lag(T0, RES_5M, now=T0 + RES_5M) is None
    assert sched.check_lag(T0, RES_5M, now=T0 + RES_5M - 250) is None


def test_closing_opentime_follows_the_wall_clock():
    sched = Scheduler(clock=FakeClock(T0))
    # on-time front-run wake-up for the bar opening at T0
    assert sched.closing_opentime(RES_5M, now=T0 + RES_5M - 250) == T0
    # a few seconds late: that bar is still the one closing
    assert sched.closing_opentime(RES_5M, now=T0 + RES_5M + 5_000) == T0
    # more than a bar late
    assert sched.closing_opentime(RES_5M, now=T0 + 2 * RES_5M + 5_000) == T0 + RES_5M
