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
"""Cron expression wrapper for fire-time calculations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime

from croniter import croniter


@dataclass(frozen=True)
class CronExpression:
    """Wraps a standard 5-field cron expression ("minute hour day month weekday")."""

    expression: str

    def __post_init__(self) -> None:
        if not croniter.is_valid(self.expression):
            raise ValueError(f"Invalid cron expression: {self.expression}")

    def next_fire_time(self, after: datetime | None = None) -> datetime:
        """Return the first fire time strictly after *after* (default: now)."""
        base = after or datetime.now(UTC)
        return croniter(self.expression, base).get_next(datetime)

    def previous_fire_time(self, before: datetime | None = None) -> datetime:
        base = before or datetime.now(UTC)
        return croniter(self.expression, base).get_prev(datetime)

    def is_due(self, last_fire: datetime, now: datetime) -> bool:
        """Whether a fire time falls in ``(last_fire, now]``.

        Pure: the answer depends only on the two instants, so a scheduler
        that was asleep past several fire times fires once, not once per
        missed slot.
        """
        if now <= last_fire:
            return False
        return self.next_fire_time(last_fire) <= now

    def seconds_until_next(self, after: datetime | None = None) -> float:
        now = after or datetime.now(UTC)
        return (self.next_fire_time(now) - now).total_seconds()
