"""Unit tests for the warmup backfill."""
import pytest

from candle_feed.errors import WarmupUnavailable
from candle_feed.timing import to_iso
from candle_feed.warmup import MAX_WARMUP_BARS, POLL_DELAY_SECONDS, WARMUP_MAX_ATTEMPTS, WarmupReconciler
from conftest import RES_5M, T0, FakeExchange, bucket


def history(n, opentime=T0):
    """n closed bars ending at `opentime`, most recent first (as the API returns them)."""
    return [bucket(opentime - i * RES_5M, o=float(i)) for i in range(n)]


def test_emits_chronologically_and_marks_history(fake_sleep, sleeps):
    t3, t2, t1 = history(3)
    ex = FakeExchange(latest=[[t3]], history=[t3, t2, t1])

    bars = WarmupReconciler(ex, sleep=fake_sleep).fetch("5m", RES_5M, T0, 3)

    assert [b.open_epoch for b in bars] == [T0 - 3 * RES_5M, T0 - 2 * RES_5M, T0 - RES_5M]
    assert [b.open for b in bars] == [t1.open, t2.open, t3.open]
    assert all(b.live is False for b in bars)
    for b in bars:
        assert b.open_timestamp == to_iso(b.open_epoch)
        assert b.close_timestamp == to_iso(b.open_epoch + RES_5M)
        assert b.retrieved_timestamp == b.close_timestamp
    assert sleeps == []


def test_consecutive_bars_are_one_resolution_apart(fake_sleep):
    ex = FakeExchange(latest=[history(1)], history=history(25))
    bars = WarmupReconciler(ex, sleep=fake_sleep).fetch("5m", RES_5M, T0, 25)

    gaps = {b.open_epoch - a.open_epoch for a, b in zip(bars, bars[1:])}
    assert gaps == {RES_5M}
    assert bars[-1].open_epoch == T0 - RES_5M


def test_waits_for_exchange_publication(fake_sleep, sleeps, capsys):
    stale = bucket(T0 - RES_5M)
    ex = FakeExchange(latest=[[stale], [stale], [bucket(T0)]], history=history(2))

    bars = WarmupReconciler(ex, sleep=fake_sleep).fetch("5m", RES_5M, T0, 2)

    assert len(bars) == 2
    assert sleeps == [POLL_DELAY_SECONDS, POLL_DELAY_SECONDS]
    assert capsys.readouterr().out.count("Waiting for exchange to publish") == 1


def test_exhausted_wait_raises(fake_sleep, sleeps):
    ex = FakeExchange(latest=[[bucket(T0 - RES_5M)]], history=history(3))

    with pytest.raises(WarmupUnavailable) as info:
        WarmupReconciler(ex, sleep=fake_sleep).fetch("5m", RES_5M, T0, 3)

    assert info.value.attempts == WARMUP_MAX_ATTEMPTS
    assert info.value.expected_opentime == T0 - RES_5M
    assert info.value.last_seen == T0 - 2 * RES_5M
    assert len(sleeps) == WARMUP_MAX_ATTEMPTS - 1
    assert not any(c[3] == 3 for c in ex.calls)


def test_exhausted_wait_best_effort_proceeds(fake_sleep):
    ex = FakeExchange(latest=[[]], history=history(3, T0 - RES_5M))

    bars = WarmupReconciler(ex, sleep=fake_sleep, best_effort=True, max_attempts=4).fetch("5m", RES_5M, T0, 3)

    assert len(bars) == 3
    assert bars[-1].open_epoch == T0 - 2 * RES_5M


def test_offline_skips_publication_wait(fake_sleep, sleeps):
    ex = FakeExchange(latest=[[bucket(T0 - 5 * RES_5M)]], history=history(2))

    bars = WarmupReconciler(ex, sleep=fake_sleep).fetch("5m", RES_5M, T0, 2, offline=True)

    assert len(bars) == 2
    assert [c for c in ex.calls if c[3] == 1] == []
    assert sleeps == []


def test_request_is_capped(fake_sleep):
    ex = FakeExchange(latest=[history(1)], history=history(3))
    WarmupReconciler(ex, sleep=fake_sleep).fetch("5m", RES_5M, T0, 5_000)
    assert ("bucketed", "5m", False, MAX_WARMUP_BARS, True) in ex.calls


def test_zero_count_does_nothing(fake_sleep):
    ex = FakeExchange()
    assert WarmupReconciler(ex, sleep=fake_sleep).fetch("5m", RES_5M, T0, 0) == []
    assert ex.calls == []
