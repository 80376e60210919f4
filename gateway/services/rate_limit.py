"""In-memory sliding-window rate limiting.

Each principal owns a deque of monotonic timestamps confined to its trailing
window. Windows are spread over a fixed set of shards, each guarded by its
own lock, so the trim-check-append sequence for one principal is atomic
while principals on different shards never wait on each other. The checks
perform no I/O and never hold a lock across an ``await``.

State is process-local and starts empty on every restart. Principals whose
windows have fully drained are evicted when any check reaches their shard
after the sweep interval, admitted or refused, and by ``evict_idle`` which
the application runs on a timer so shards that see no traffic are swept too.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable, Hashable

from gateway.errors import RateLimitExceeded

logger = logging.getLogger(__name__)


class _Window:
    __slots__ = ("timestamps", "duration")

    def __init__(self, duration: float):
        self.timestamps: deque[float] = deque()
        self.duration = duration

    def trim(self, now: float) -> None:
        cutoff = now - self.duration
        timestamps = self.timestamps
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()


class _Shard:
    __slots__ = ("lock", "windows", "last_sweep")

    def __init__(self, now: float):
        self.lock = threading.Lock()
        self.windows: dict[Hashable, _Window] = {}
        self.last_sweep = now


class SlidingWindowRateLimiter:
    """Per-principal sliding window limiter.

    Args:
        shards: Number of independently locked partitions.
        sweep_interval: Minimum seconds between eviction sweeps of a shard.
        clock: Monotonic time source in seconds; injectable for tests.
    """

    def __init__(
        self,
        shards: int = 64,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if shards < 1:
            raise ValueError("shards must be at least 1")
        self._clock = clock
        self._sweep_interval = sweep_interval
        now = clock()
        self._shards = [_Shard(now) for _ in range(shards)]

    def _shard_for(self, principal_id: Hashable) -> _Shard:
        return self._shards[hash(principal_id) % len(self._shards)]

    def check(self, principal_id: Hashable, limit: int, window: float) -> int:
        """Admit one request for ``principal_id`` or raise.

        Trims timestamps older than ``now - window``; if ``limit`` of them
        remain the request is refused and nothing is recorded, otherwise
        ``now`` is appended.

        Returns:
            The number of requests still available in the current window.

        Raises:
            RateLimitExceeded: The window already holds ``limit`` requests.
            ValueError: ``limit`` or ``window`` is not positive.
        """
        if limit <= 0:
            raise ValueError("limit must be a positive integer")
        if window <= 0:
            raise ValueError("window must be positive")

        shard = self._shard_for(principal_id)
        with shard.lock:
            now = self._clock()
            if now - shard.last_sweep >= self._sweep_interval:
                self._sweep(shard, now)

            entry = shard.windows.get(principal_id)
            if entry is None:
                entry = shard.windows[principal_id] = _Window(window)
            entry.duration = window
            entry.trim(now)

            timestamps = entry.timestamps
            if len(timestamps) >= limit:
                retry_after = max(timestamps[0] + window - now, 0.0)
                raise RateLimitExceeded(limit=limit, retry_after=retry_after)

            timestamps.append(now)
            remaining = limit - len(timestamps)

        return remaining

    def _sweep(self, shard: _Shard, now: float) -> int:
        """Drop drained windows from a shard. Caller holds ``shard.lock``."""
        idle = []
        for principal_id, entry in shard.windows.items():
            entry.trim(now)
            if not entry.timestamps:
                idle.append(principal_id)
        for principal_id in idle:
            del shard.windows[principal_id]
        shard.last_sweep = now
        return len(idle)

    def evict_idle(self) -> int:
        """Sweep every shard now. Returns the number of evicted principals."""
        evicted = 0
        for shard in self._shards:
            with shard.lock:
                evicted += self._sweep(shard, self._clock())
        if evicted:
            logger.debug(
                "Evicted %d idle rate-limit windows, %d still tracked", evicted, self.tracked()
            )
        return evicted

    def tracked(self) -> int:
        """Number of principals currently holding a window."""
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.windows)
        return total
