"""Countdown and elapsed timers."""
import threading

from conftest import FakeClock
from mcq_prep.timer import CountdownTimer, ElapsedTimer, Ticker, format_time


def test_format_time():
    assert format_time(0) == "0:00"
    assert format_time(65_000) == "1:05"
    assert format_time(30 * 60_000) == "30:00"
    assert format_time(2 * 3600_000) == "2:00:00"
    assert format_time(3_725_000) == "1:02:05"
    assert format_time(-5) == "0:00"


def test_elapsed_timer_counts_up_and_freezes():
    clock = FakeClock()
    timer = ElapsedTimer(clock)
    assert timer.elapsed == 0
    timer.start()
    clock.advance(1500)
    assert timer.elapsed == 1500
    timer.stop()
    clock.advance(1000)
    assert timer.elapsed == 1500
    assert not timer.is_running


def test_countdown_ticks_and_expires_once():
    fired = []
    timer = CountdownTimer(3000, on_expire=lambda: fired.append(1), clock=FakeClock())
    timer.start()
    timer.tick()
    assert timer.remaining == 2000
    for _ in range(5):
        timer.tick()
    assert timer.remaining == 0
    assert timer.expired
    assert fired == [1]


def test_countdown_remaining_never_negative():
    timer = CountdownTimer(1500, clock=FakeClock())
    timer.start()
    timer.tick()
    timer.tick()
    assert timer.remaining == 0


def test_resync_uses_wall_clock_anchor():
    clock = FakeClock()
    fired = []
    timer = CountdownTimer(60_000, on_expire=lambda: fired.append(1), clock=clock)
    timer.start()
    timer.tick()
    # tab hidden: ticks throttled while 40s pass
    clock.advance(40_000)
    timer.resync()
    assert timer.remaining == 20_000
    assert timer.elapsed == 40_000

    clock.advance(30_000)
    timer.resync()
    timer.resync()
    assert timer.remaining == 0
    assert fired == [1]


def test_resync_and_tick_race_fires_once():
    clock = FakeClock()
    fired = []
    timer = CountdownTimer(1000, on_expire=lambda: fired.append(1), clock=clock)
    timer.start()
    clock.advance(5000)
    timer.resync()
    timer.tick()
    assert fired == [1]


def test_stop_is_idempotent_and_freezes_remaining():
    clock = FakeClock()
    timer = CountdownTimer(10_000, clock=clock)
    timer.start()
    timer.tick()
    timer.stop()
    timer.stop()
    timer.tick()
    clock.advance(5000)
    timer.resync()
    assert timer.remaining == 9000
    assert not timer.is_running


def test_start_after_expiry_is_ignored():
    fired = []
    timer = CountdownTimer(1000, on_expire=lambda: fired.append(1), clock=FakeClock())
    timer.start()
    timer.tick()
    timer.start()
    assert timer.remaining == 0
    assert not timer.is_running
    assert fired == [1]


def test_zero_limit_expires_on_start():
    fired = []
    timer = CountdownTimer(0, on_expire=lambda: fired.append(1), clock=FakeClock())
    timer.start()
    assert timer.expired
    assert fired == [1]


def test_ticker_calls_back_until_cancelled():
    calls = threading.Event()
    ticker = Ticker(1, calls.set)
    ticker.start()
    assert calls.wait(2)
    ticker.cancel()
    assert not ticker.is_alive


def test_background_countdown_expires():
    done = threading.Event()
    timer = CountdownTimer(3, on_expire=done.set, tick_interval=1)
    timer.start(background=True)
    assert done.wait(2)
    assert timer.remaining == 0
