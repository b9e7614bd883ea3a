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
"""Outbound port protocols for the transactional engine.

These ``@runtime_checkable`` ``Protocol`` definitions form the boundary
between the saga engine and its infrastructure adapters (ledger storage,
observability sinks).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from remediflow.transactional.ledger.records import StepRecord
    from remediflow.transactional.saga.core.run import SagaRun


@runtime_checkable
class LedgerStorePort(Protocol):
    """Port for the append-only storage behind the step ledger.

    Adapters never update or delete a record once appended. ``history``
    must return records in append order.
    """

    async def append(self, record: StepRecord) -> None:
        """Append *record* to the ledger."""
        ...

    async def history(self, run_id: str, step_name: str) -> list[StepRecord]:
        """Return every record for ``(run_id, step_name)`` in append order."""
        ...

    async def records(self, run_id: str) -> list[StepRecord]:
        """Return every record for *run_id* in append order."""
        ...


@runtime_checkable
class SagaEventsPort(Protocol):
    """Port for emitting lifecycle events from the saga runner.

    Adapters integrate with logging and tracing back-ends. The runner treats
    every sink as optional: a failing sink never changes a run's outcome.
    """

    async def on_start(self, run: SagaRun) -> None:
        """Fired when a run is admitted and starts executing."""
        ...

    async def on_step_started(self, run: SagaRun, step_name: str) -> None:
        """Fired before an attempt of *step_name* is invoked (never on replay)."""
        ...

    async def on_step_success(
        self,
        run: SagaRun,
        step_name: str,
        attempt: int,
        latency_ms: float,
    ) -> None:
        """Fired when an attempt of *step_name* succeeds."""
        ...

    async def on_step_failed(
        self,
        run: SagaRun,
        step_name: str,
        error: str,
        attempt: int,
        terminal: bool,
    ) -> None:
        """Fired when an attempt of *step_name* fails (retried or not)."""
        ...

    async def on_retry_scheduled(
        self,
        run: SagaRun,
        step_name: str,
        attempt: int,
        delay_seconds: float,
    ) -> None:
        """Fired when a failed step is scheduled for another attempt."""
        ...

    async def on_completed(self, run: SagaRun) -> None:
        """Fired once a run reaches a terminal status."""
        ...
