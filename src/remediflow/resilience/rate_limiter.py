# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Per-key admission control using a sliding-window log."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from remediflow.kernel.exceptions import RateLimitException

if TYPE_CHECKING:
    from remediflow.config.properties import RateLimitProperties


@dataclass(frozen=True)
class Admitted:
    """The trigger may start a saga run."""

    key: str
    remaining: int


@dataclass(frozen=True)
class Rejected:
    """The key's window is full; retry once *retry_after* has elapsed."""

    key: str
    retry_after: timedelta


AdmissionDecision = Admitted | Rejected


class SlidingWindowRateLimiter:
    """Sliding-window admission control keyed by actor.

    Each key keeps the timestamps of its admissions inside the last *period*.
    A new admission is allowed while fewer than *limit* timestamps remain in
    the window. Checks and increments for all keys happen under one
    ``asyncio.Lock``.

    Args:
        limit: Admissions allowed per key within *period*.
        period: Length of the sliding window.
        clock: Source of the current time when callers do not pass ``now``.
    """

    def __init__(
        self,
        limit: int = 10,
        period: timedelta = timedelta(seconds=60),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if limit < 1:
            raise ValueError(f"limit must be >= 1, got {limit}")
        self._limit = limit
        self._period = period
        self._clock = clock or (lambda: datetime.now(UTC))
        self._windows: dict[str, deque[datetime]] = {}
        self._lock = asyncio.Lock()

    @classmethod
    def from_properties(cls, props: RateLimitProperties) -> SlidingWindowRateLimiter:
        return cls(limit=props.limit, period=timedelta(seconds=props.period_seconds))

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def period(self) -> timedelta:
        return self._period

    async def try_admit(self, key: str, now: datetime | None = None) -> AdmissionDecision:
        """Admit one trigger for *key* or reject it with the time until a slot frees up."""
        now = now or self._clock()
        async with self._lock:
            window = self._windows.setdefault(key, deque())
            self._expire(window, now)
            if len(window) >= self._limit:
                retry_after = window[0] + self._period - now
                return Rejected(key=key, retry_after=max(retry_after, timedelta(0)))
            window.append(now)
            return Admitted(key=key, remaining=self._limit - len(window))

    async def acquire(self, key: str, now: datetime | None = None) -> Admitted:
        """Admit one trigger for *key*.

        Raises:
            RateLimitException: If *key* has used up its window.
        """
        decision = await self.try_admit(key, now)
        if isinstance(decision, Rejected):
            raise RateLimitException(
                f"Rate limit reached for '{key}'",
                retry_after=decision.retry_after,
                context={"key": key},
            )
        return decision

    def remaining(self, key: str, now: datetime | None = None) -> int:
        """Admissions still available to *key* in the current window (approximate)."""
        now = now or self._clock()
        window = self._windows.get(key)
        if window is None:
            return self._limit
        return self._limit - sum(1 for ts in window if ts > now - self._period)

    def _expire(self, window: deque[datetime], now: datetime) -> None:
        cutoff = now - self._period
        while window and window[0] <= cutoff:
            window.popleft()
