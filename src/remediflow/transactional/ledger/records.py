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
"""Step ledger record types — StepRecord and the pure reducers over its history."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from remediflow.transactional.shared.types import StepStatus


@dataclass(frozen=True)
class StepRecord:
    """Immutable entry in the step ledger.

    Starting an attempt appends a ``PENDING`` record; finishing it appends a
    ``SUCCEEDED`` or ``FAILED`` record carrying the same *attempt* number.

    Fields
    ------
    run_id:
        Saga run the step belongs to.
    step_name:
        Step name, unique within the run. Fan-out sub-steps use
        ``"<step>:<sub_key>"``.
    attempt:
        Monotonic attempt counter for ``(run_id, step_name)``.
    execution:
        Which execution of the run (1 for the first, +1 per retry of the run)
        made the attempt.
    status:
        Outcome of the attempt.
    result:
        JSON-compatible value returned by the step; only when ``SUCCEEDED``.
    error:
        Error message; only when ``FAILED``.
    error_type:
        Class name of the exception; only when ``FAILED``.
    terminal:
        ``True`` when the failure is non-retryable.
    started_at / finished_at:
        UTC timestamps of the attempt.
    """

    run_id: str
    step_name: str
    attempt: int
    status: StepStatus
    started_at: datetime
    execution: int = 1
    result: Any = None
    error: str | None = None
    error_type: str | None = None
    terminal: bool = False
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == StepStatus.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status == StepStatus.FAILED


def find_success(history: Sequence[StepRecord]) -> StepRecord | None:
    """Return the SUCCEEDED record in *history*, if the step already succeeded."""
    for record in history:
        if record.succeeded:
            return record
    return None


def next_attempt(history: Sequence[StepRecord]) -> int:
    """Attempt number for a new attempt given the existing *history*."""
    return max((r.attempt for r in history), default=0) + 1


def count_failures(history: Sequence[StepRecord], execution: int | None = None) -> int:
    """Number of FAILED attempts, optionally restricted to one execution."""
    return sum(
        1
        for r in history
        if r.failed and (execution is None or r.execution == execution)
    )
