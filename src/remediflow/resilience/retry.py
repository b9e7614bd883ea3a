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
"""Retry policy with bounded exponential backoff."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from remediflow.config.properties import AlertProperties, RetryProperties


@dataclass(frozen=True)
class GiveUp:
    """Decision returned when a step must not be attempted again."""

    step_name: str
    attempts: int
    terminal: bool = False


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable exponential backoff policy.

    The policy holds no state: the caller supplies how many attempts have
    already failed, read from the step ledger.

    Args:
        max_attempts: Maximum number of attempts (including the first).
        initial_delay: Delay before the second attempt.
        factor: Multiplier applied to the delay after every failure.
        max_delay: Upper bound for any single delay.
    """

    max_attempts: int = 3
    initial_delay: timedelta = timedelta(seconds=1)
    factor: float = 2.0
    max_delay: timedelta = timedelta(minutes=1)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.factor < 1.0:
            raise ValueError(f"factor must be >= 1.0, got {self.factor}")

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        """Policy for deterministic steps that are attempted exactly once."""
        return cls(max_attempts=1)

    @classmethod
    def from_properties(cls, props: RetryProperties | AlertProperties) -> RetryPolicy:
        return cls(
            max_attempts=props.max_attempts,
            initial_delay=timedelta(milliseconds=props.initial_delay_ms),
            factor=props.factor,
            max_delay=timedelta(milliseconds=props.max_delay_ms),
        )

    def next_delay(
        self,
        step_name: str,
        attempt_count: int,
        *,
        terminal: bool = False,
    ) -> timedelta | GiveUp:
        """Return the delay before the next attempt, or :class:`GiveUp`.

        Args:
            step_name: Step being retried; carried into the ``GiveUp`` value.
            attempt_count: Number of attempts that have already failed.
            terminal: Whether the latest failure was flagged non-retryable.
        """
        if terminal or attempt_count >= self.max_attempts:
            return GiveUp(step_name=step_name, attempts=attempt_count, terminal=terminal)

        exponent = max(attempt_count - 1, 0)
        delay = self.initial_delay * (self.factor ** exponent)
        return min(delay, self.max_delay)

    def schedule(self) -> list[timedelta]:
        """Every delay an always-failing step would wait, in order."""
        delays: list[timedelta] = []
        for attempt_count in range(1, self.max_attempts):
            decision = self.next_delay("", attempt_count)
            if isinstance(decision, GiveUp):
                break
            delays.append(decision)
        return delays
