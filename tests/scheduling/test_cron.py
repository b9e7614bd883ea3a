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
"""Tests for CronExpression wrapper."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from remediflow.scheduling.cron import CronExpression

MIDNIGHT = CronExpression("0 0 * * *")


class TestCronExpression:
    def test_invalid_expression_raises_value_error(self) -> None:
        with pytest.raises(ValueError, match="Invalid cron expression"):
            CronExpression("every night")

    def test_next_fire_time_is_next_midnight(self) -> None:
        base = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        assert MIDNIGHT.next_fire_time(base) == datetime(2026, 3, 2, 0, 0, tzinfo=UTC)

    def test_next_fire_time_is_strictly_after(self) -> None:
        base = datetime(2026, 3, 2, 0, 0, tzinfo=UTC)
        assert MIDNIGHT.next_fire_time(base) == datetime(2026, 3, 3, 0, 0, tzinfo=UTC)

    def test_previous_fire_time(self) -> None:
        base = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        assert MIDNIGHT.previous_fire_time(base) == datetime(2026, 3, 1, 0, 0, tzinfo=UTC)

    def test_seconds_until_next(self) -> None:
        base = datetime(2026, 3, 1, 23, 59, tzinfo=UTC)
        assert MIDNIGHT.seconds_until_next(base) == 60.0


class TestIsDue:
    def test_due_once_midnight_has_passed(self) -> None:
        last = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        assert MIDNIGHT.is_due(last, datetime(2026, 3, 2, 0, 0, tzinfo=UTC))
        assert MIDNIGHT.is_due(last, datetime(2026, 3, 2, 0, 5, tzinfo=UTC))

    def test_not_due_before_midnight(self) -> None:
        last = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        assert not MIDNIGHT.is_due(last, datetime(2026, 3, 1, 23, 59, tzinfo=UTC))

    def test_not_due_when_time_has_not_moved(self) -> None:
        now = datetime(2026, 3, 2, 0, 0, tzinfo=UTC)
        assert not MIDNIGHT.is_due(now, now)

    def test_is_pure(self) -> None:
        last = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        now = datetime(2026, 3, 4, 8, 0, tzinfo=UTC)
        assert [MIDNIGHT.is_due(last, now) for _ in range(3)] == [True, True, True]
