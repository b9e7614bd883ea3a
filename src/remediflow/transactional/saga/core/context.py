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
"""SagaContext — runtime state carrier for one execution of a saga run."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from remediflow.transactional.saga.core.run import SagaRun
from remediflow.transactional.shared.types import StepState

if TYPE_CHECKING:
    from remediflow.transactional.ledger.step_ledger import StepLedger


@dataclass
class SagaContext:
    """Mutable bag of state threaded through every step of a saga execution.

    Step handlers read the trigger and earlier step results from here. Results
    come from the ledger, so after a re-entry they hold the stored values of
    steps that already succeeded.
    """

    run: SagaRun
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(UTC))
    step_results: dict[str, Any] = field(default_factory=dict)
    step_states: dict[str, StepState] = field(default_factory=dict)
    step_attempts: dict[str, int] = field(default_factory=dict)
    topology_layers: list[list[str]] = field(default_factory=list)
    ledger: StepLedger | None = None

    @property
    def run_id(self) -> str:
        return self.run.run_id

    @property
    def trigger(self) -> Any:
        return self.run.trigger_event

    @property
    def execution(self) -> int:
        return self.run.execution

    def now(self) -> datetime:
        return self.clock()

    # ── result helpers ────────────────────────────────────────

    def result(self, step_name: str) -> Any:
        """Return the result of *step_name*.

        Raises:
            KeyError: If the step has not produced a result in this run.
        """
        if step_name not in self.step_results:
            raise KeyError(f"Step '{step_name}' has no result in run {self.run_id}")
        return self.step_results[step_name]

    def get_result(self, step_name: str, default: Any = None) -> Any:
        """Return the result stored for *step_name*, or *default* if absent."""
        return self.step_results.get(step_name, default)

    def set_result(self, step_name: str, result: Any) -> None:
        self.step_results[step_name] = result

    # ── state helpers ─────────────────────────────────────────

    def set_state(self, step_name: str, state: StepState) -> None:
        self.step_states[step_name] = state

    def state_of(self, step_name: str) -> StepState:
        return self.step_states.get(step_name, StepState.PENDING)

    # ── ledger helpers ────────────────────────────────────────

    async def attempted_before(self, step_name: str) -> bool:
        """Whether this run started an attempt of *step_name* before the current one.

        Counts attempts of every execution of the run. Without a ledger there
        is no history, so the answer is ``False``.
        """
        if self.ledger is None:
            return False
        history = await self.ledger.history(self.run_id, step_name)
        return len({record.attempt for record in history}) > 1
