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
"""SagaRun and RunFailure — one execution instance of a saga and why it failed."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from remediflow.transactional.shared.types import ErrorKind, RunStatus, SagaType

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass(frozen=True)
class RunFailure:
    """Immutable diagnostic attached to a failed or cancelled run.

    Fields
    ------
    kind:
        Classification of the failure.
    message:
        Human-readable description of the originating error.
    step_name:
        Step that caused the failure, or ``None`` for run-level failures
        (admission, timeout, cancellation).
    attempts:
        Attempts made by *step_name* in the failing execution.
    retry_after:
        For ``RATE_LIMITED`` failures, the time until admission is possible.
    """

    kind: ErrorKind
    message: str
    step_name: str | None = None
    attempts: int = 0
    retry_after: timedelta | None = None


class RunStateError(RuntimeError):
    """Raised when a terminal run is mutated or a transition is illegal."""


@dataclass
class SagaRun:
    """One execution of a saga for a trigger event.

    Owned by the saga runner. Once the status is terminal the instance is
    frozen: every further mutation raises :class:`RunStateError`. Retrying a
    run produces a new ``SagaRun`` with the same ``run_id`` and
    ``created_at`` and the next ``execution`` number.
    """

    run_id: str
    saga_type: SagaType
    trigger_event: Any
    created_at: datetime
    execution: int = 1
    status: RunStatus = RunStatus.PENDING
    completed_at: datetime | None = None
    output: Any = None
    failure: RunFailure | None = None
    warnings: list[RunFailure] = field(default_factory=list)

    def __setattr__(self, name: str, value: Any) -> None:
        if self.__dict__.get("_sealed", False):
            raise RunStateError(f"Run {self.run_id} is {self.status} and can no longer change")
        super().__setattr__(name, value)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def run_timestamp_ms(self) -> int:
        """Creation time in epoch milliseconds; stable across retries of the run."""
        return (self.created_at - _EPOCH) // timedelta(milliseconds=1)

    def mark_running(self) -> None:
        if self.status != RunStatus.PENDING:
            raise RunStateError(f"Run {self.run_id} cannot start from {self.status}")
        self.status = RunStatus.RUNNING

    def add_warning(self, warning: RunFailure) -> None:
        self.warnings = [*self.warnings, warning]

    def succeed(self, output: Any, at: datetime) -> None:
        self._finish(RunStatus.SUCCEEDED, at, output=output)

    def fail(self, failure: RunFailure, at: datetime) -> None:
        self._finish(RunStatus.FAILED, at, failure=failure)

    def cancel(self, failure: RunFailure, at: datetime) -> None:
        self._finish(RunStatus.CANCELLED, at, failure=failure)

    def next_execution(self, created_at: datetime | None = None) -> SagaRun:
        """Fresh PENDING run for re-entering the same ``run_id``."""
        return SagaRun(
            run_id=self.run_id,
            saga_type=self.saga_type,
            trigger_event=self.trigger_event,
            created_at=created_at or self.created_at,
            execution=self.execution + 1,
        )

    def _finish(
        self,
        status: RunStatus,
        at: datetime,
        output: Any = None,
        failure: RunFailure | None = None,
    ) -> None:
        self.output = output
        self.failure = failure
        self.completed_at = at
        self.status = status
        object.__setattr__(self, "_sealed", True)
