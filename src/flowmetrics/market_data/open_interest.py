"""Open interest tracking -- rate-limited fetches with trend classification.

The tracker holds the last two open interest values plus a bounded history
and turns them into an OpenInterestSnapshot. Fetching is delegated to an
opaque async collaborator; the OpenInterestMonitor drives it from a
background task so the fetch never blocks trade ingestion.
"""

import asyncio
import math
import random
from collections import deque
from collections.abc import Awaitable, Callable

from flowmetrics.config import OpenInterestSettings
from flowmetrics.exceptions import OpenInterestFetchError, OpenInterestTimeout
from flowmetrics.logging import get_logger
from flowmetrics.metrics.statistics import clamp, stddev
from flowmetrics.models import (
    OISignal,
    OISource,
    OITrend,
    OpenInterestSample,
    OpenInterestSnapshot,
    now_ms,
)

logger = get_logger(__name__)

#: Given a symbol, return its current open interest.
OpenInterestFetcher = Callable[[str], Awaitable[float]]

TREND_THRESHOLD = 0.0005  # |delta| must exceed 0.05% of current OI
SIGNAL_THRESHOLD_PCT = 0.1
VOLATILITY_SAMPLES = 10
VOLATILITY_SCALE = 1000
STRENGTH_SCALE = 10


class OpenInterestTracker:
    """Bounded open interest history with a fetch rate limit.

    Args:
        symbol: Instrument passed to the fetcher.
        fetcher: Async callable returning the current open interest.
        settings: Rate limit, timeout and history capacity.
        source: Label carried on every snapshot.
        clock: Millisecond clock, injectable for tests.
    """

    def __init__(
        self,
        symbol: str,
        fetcher: OpenInterestFetcher,
        settings: OpenInterestSettings | None = None,
        source: OISource = OISource.REAL,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._symbol = symbol
        self._fetcher = fetcher
        self._settings = settings or OpenInterestSettings()
        self._source = source
        self._clock = clock
        self._lock = asyncio.Lock()

        self.current_oi = 0.0
        self.previous_oi = 0.0
        self.history: deque[OpenInterestSample] = deque(maxlen=self._settings.history_size)
        self.last_fetch_time = 0

    @property
    def symbol(self) -> str:
        return self._symbol

    @property
    def fetch_interval_ms(self) -> int:
        return self._settings.fetch_interval_ms

    async def refresh(self) -> bool:
        """Fetch a new open interest value unless rate limited.

        Skipped when a value is already held and less than
        ``fetch_interval_ms`` has elapsed since the last fetch.

        Returns:
            True if a new value was stored, False if the call was rate limited.

        Raises:
            OpenInterestFetchError: if the fetch failed, timed out or returned
                an unusable value. State is left unchanged.
        """
        async with self._lock:
            now = self._clock()
            if self.current_oi > 0 and now - self.last_fetch_time < self.fetch_interval_ms:
                return False

            value = await self._fetch()

            self.previous_oi = self.current_oi if self.current_oi > 0 else value
            self.current_oi = value
            self.history.append(OpenInterestSample(value=value, timestamp=now))
            self.last_fetch_time = now

        logger.info(
            "open_interest_refreshed",
            open_interest=value,
            previous=self.previous_oi,
            history_len=len(self.history),
        )
        return True

    async def _fetch(self) -> float:
        timeout = self._settings.fetch_timeout
        try:
            value = await asyncio.wait_for(self._fetcher(self._symbol), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise OpenInterestTimeout(
                f"Open interest fetch for {self._symbol} exceeded {timeout}s"
            ) from e
        except OpenInterestFetchError:
            raise
        except Exception as e:
            raise OpenInterestFetchError(
                f"Open interest fetch for {self._symbol} failed: {e}"
            ) from e

        try:
            value = float(value)
        except (TypeError, ValueError) as e:
            raise OpenInterestFetchError(f"Unparseable open interest: {value!r}") from e
        if not math.isfinite(value) or value < 0:
            raise OpenInterestFetchError(f"Invalid open interest value: {value}")
        return value

    def snapshot(self) -> OpenInterestSnapshot:
        """Classify the latest change and summarize recent history."""
        delta = self.current_oi - self.previous_oi
        delta_percent = delta / self.previous_oi * 100 if self.previous_oi > 0 else 0.0

        trend = OITrend.FLAT
        if abs(delta) > self.current_oi * TREND_THRESHOLD:
            trend = OITrend.UP if delta > 0 else OITrend.DOWN

        signal = OISignal.NEUTRAL
        if trend is OITrend.UP and delta_percent > SIGNAL_THRESHOLD_PCT:
            signal = OISignal.BULLISH
        elif trend is OITrend.DOWN and delta_percent < -SIGNAL_THRESHOLD_PCT:
            signal = OISignal.BEARISH

        return OpenInterestSnapshot(
            open_interest=self.current_oi,
            delta=delta,
            delta_percent=delta_percent,
            trend=trend,
            signal=signal,
            volatility=self._volatility(),
            strength=clamp(delta_percent * STRENGTH_SCALE, -1.0, 1.0),
            last_update=self._clock(),
            source=self._source,
        )

    def _volatility(self) -> float:
        """Std-dev of the last 10 values relative to their max, scaled into [0, 1]."""
        if len(self.history) < 2:
            return 0.0
        recent = [s.value for s in list(self.history)[-VOLATILITY_SAMPLES:]]
        max_oi = max(max(recent), 1.0)
        return min(1.0, stddev(recent) / max_oi * VOLATILITY_SCALE)


class RandomWalkOpenInterest:
    """Deterministic random-walk open interest source for offline runs.

    Snapshots from a tracker using it should be labelled ``OISource.MOCK``.
    """

    def __init__(self, start: float = 100_000.0, step_pct: float = 0.002, seed: int = 7) -> None:
        self._value = start
        self._step_pct = step_pct
        self._rng = random.Random(seed)

    async def __call__(self, symbol: str) -> float:
        step = self._rng.uniform(-self._step_pct, self._step_pct)
        self._value = max(0.0, self._value * (1 + step))
        return self._value


class OpenInterestMonitor:
    """Drives an OpenInterestTracker from a background polling task.

    Wakes every ``poll_interval`` seconds and calls ``refresh()``; the
    tracker's own rate limit decides whether a fetch actually happens.
    Failures are logged and retried only on the next scheduled wake-up.
    """

    def __init__(self, tracker: OpenInterestTracker, poll_interval: float = 5.0) -> None:
        self._tracker = tracker
        self._poll_interval = poll_interval
        self._running = False
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]

    @property
    def tracker(self) -> OpenInterestTracker:
        return self._tracker

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Begin polling open interest in the background."""
        if self._running:
            logger.warning("open_interest_monitor_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("open_interest_monitor_started", poll_interval=self._poll_interval)

    async def stop(self) -> None:
        """Stop the monitor gracefully."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("open_interest_monitor_stopped")

    async def _poll_loop(self) -> None:
        while self._running:
            await self.poll_once()
            if self._running:
                await asyncio.sleep(self._poll_interval)

    async def poll_once(self) -> bool:
        """Run a single refresh, logging (not raising) fetch failures.

        Returns:
            True if a new value was stored.
        """
        try:
            return await self._tracker.refresh()
        except OpenInterestFetchError as e:
            logger.warning(
                "open_interest_fetch_failed",
                symbol=self._tracker.symbol,
                error=str(e),
            )
            return False

    def snapshot(self) -> OpenInterestSnapshot:
        """Eventually-consistent snapshot of the tracked open interest."""
        return self._tracker.snapshot()
