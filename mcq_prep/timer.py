"""
Session timers.

ElapsedTimer counts up for practice and learn runs. CountdownTimer runs timed
exams: a 1-second tick decrements the remaining time, and ``resync()`` (called
when a hidden tab comes back) recomputes it from the wall-clock anchor so a
throttled tick never hands the learner extra time. Expiry fires once.
"""
import logging
import threading
from typing import Callable, Optional

from engine import TICK_INTERVAL_MS
from mcq_prep.models import now_ms

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def format_time(milliseconds: int) -> str:
    """H:MM:SS when at least an hour, else M:SS."""
    total_seconds = max(0, int(milliseconds)) // 1000
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


class ElapsedTimer:
    """Monotonically increasing counter from start(); stop() freezes it."""

    def __init__(self, clock: Clock = now_ms):
        self._clock = clock
        self._started_at: Optional[int] = None
        self._stopped_at: Optional[int] = None

    @property
    def is_running(self) -> bool:
        return self._started_at is not None and self._stopped_at is None

    @property
    def elapsed(self) -> int:
        if self._started_at is None:
            return 0
        end = self._stopped_at if self._stopped_at is not None else self._clock()
        return max(0, end - self._started_at)

    def start(self) -> None:
        self._started_at = self._clock()
        self._stopped_at = None

    def stop(self) -> None:
        if self.is_running:
            self._stopped_at = self._clock()


class Ticker:
    """Daemon thread calling ``callback`` every ``interval_ms`` until cancelled."""

    def __init__(self, interval_ms: int, callback: Callable[[], None]):
        self._interval = interval_ms / 1000
        self._callback = callback
        self._cancelled = threading.Event()
        self._thread = threading.Thread(target=self._run, name="countdown-ticker", daemon=True)

    @property
    def is_alive(self) -> bool:
        return self._thread.is_alive() and not self._cancelled.is_set()

    def start(self) -> None:
        self._thread.start()

    def cancel(self) -> None:
        self._cancelled.set()

    def _run(self) -> None:
        while not self._cancelled.wait(self._interval):
            self._callback()


class CountdownTimer:
    """
    Countdown with anchor-based resync and single-fire expiry.

    Args:
        time_limit: total time in ms
        on_expire: called once, outside the timer lock, when time runs out
        clock: epoch-ms clock (injectable for tests)
        tick_interval: ms removed per tick
    """

    def __init__(
        self,
        time_limit: int,
        on_expire: Optional[Callable[[], None]] = None,
        clock: Clock = now_ms,
        tick_interval: int = TICK_INTERVAL_MS,
    ):
        self.time_limit = time_limit
        self.on_expire = on_expire
        self.tick_interval = tick_interval
        self._clock = clock
        self._lock = threading.Lock()
        self._anchor: Optional[int] = None
        self._remaining = time_limit
        self._running = False
        self._expired = False
        self._ticker: Optional[Ticker] = None

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def elapsed(self) -> int:
        return self.time_limit - self._remaining

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def expired(self) -> bool:
        return self._expired

    def start(self, background: bool = False) -> None:
        """Anchor to now and start counting down; ``background`` spawns a Ticker."""
        with self._lock:
            if self._expired:
                logger.warning("Countdown already expired; start() ignored")
                return
            self._anchor = self._clock()
            self._remaining = self.time_limit
            self._running = True
            if background and (self._ticker is None or not self._ticker.is_alive):
                self._ticker = Ticker(self.tick_interval, self.tick)
                self._ticker.start()
        if self.time_limit <= 0:
            self.resync()

    def tick(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._remaining = max(0, self._remaining - self.tick_interval)
            fire = self._remaining <= 0 and self._mark_expired()
        if fire:
            self._fire()

    def resync(self) -> None:
        """Recompute remaining time from the wall-clock anchor (tab visible again)."""
        with self._lock:
            if not self._running or self._anchor is None:
                return
            self._remaining = max(0, self.time_limit - (self._clock() - self._anchor))
            fire = self._remaining <= 0 and self._mark_expired()
        if fire:
            self._fire()

    def stop(self) -> None:
        with self._lock:
            self._running = False
            self._cancel_ticker()

    def _mark_expired(self) -> bool:
        if self._expired:
            return False
        self._expired = True
        self._running = False
        self._cancel_ticker()
        return True

    def _cancel_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _fire(self) -> None:
        logger.info("Countdown expired")
        if self.on_expire is not None:
            self.on_expire()
