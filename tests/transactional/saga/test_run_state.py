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
"""Tests for SagaRun state transitions and SagaContext helpers."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from remediflow.kernel.exceptions import StepFailureException
from remediflow.transactional.ledger.step_ledger import StepLedger
from remediflow.transactional.saga import RunFailure, RunStateError, SagaContext, SagaRun
from remediflow.transactional.shared.types import ErrorKind, RunStatus, SagaType, StepState

CREATED = datetime(2026, 3, 1, 12, 0, 0, 123000, tzinfo=UTC)
DONE = datetime(2026, 3, 1, 12, 5, tzinfo=UTC)


@pytest.fixture
def run() -> SagaRun:
    return SagaRun(run_id="3f2a9c7d", saga_type=SagaType.AUTO_FIX, trigger_event={"cve": "CVE-1"}, created_at=CREATED)


class TestSagaRun:
    def test_starts_pending(self, run: SagaRun) -> None:
        assert run.status == RunStatus.PENDING
        assert run.execution == 1
        assert not run.is_terminal

    def test_run_timestamp_is_epoch_millis(self, run: SagaRun) -> None:
        assert run.run_timestamp_ms == 1_772_366_400_123

    def test_succeed_seals_the_run(self, run: SagaRun) -> None:
        run.mark_running()
        run.succeed({"pr_url": "u"}, at=DONE)

        assert run.status == RunStatus.SUCCEEDED
        assert run.completed_at == DONE
        with pytest.raises(RunStateError):
            run.fail(RunFailure(kind=ErrorKind.TIMEOUT, message="late"), at=DONE)
        with pytest.raises(RunStateError):
            run.add_warning(RunFailure(kind=ErrorKind.STEP_FAILURE, message="x"))

    def test_cancel_records_failure(self, run: SagaRun) -> None:
        run.mark_running()
        run.cancel(RunFailure(kind=ErrorKind.CANCELLED, message="stop"), at=DONE)

        assert run.status == RunStatus.CANCELLED
        assert run.is_terminal
        assert run.failure.kind == ErrorKind.CANCELLED

    def test_mark_running_twice_is_illegal(self, run: SagaRun) -> None:
        run.mark_running()
        with pytest.raises(RunStateError):
            run.mark_running()

    def test_next_execution_keeps_identity(self, run: SagaRun) -> None:
        run.mark_running()
        run.fail(RunFailure(kind=ErrorKind.STEP_FAILURE, message="boom", step_name="create-pr"), at=DONE)

        again = run.next_execution()

        assert again.run_id == run.run_id
        assert again.created_at == run.created_at
        assert again.execution == 2
        assert again.status == RunStatus.PENDING
        assert again.failure is None


class TestSagaContext:
    def test_result_helpers(self, run: SagaRun) -> None:
        ctx = SagaContext(run=run, clock=lambda: DONE)
        ctx.set_result("generate-fix", "patch")

        assert ctx.result("generate-fix") == "patch"
        assert ctx.get_result("create-pr", "none") == "none"
        assert ctx.trigger == {"cve": "CVE-1"}
        assert ctx.now() == DONE
        with pytest.raises(KeyError, match="create-pr"):
            ctx.result("create-pr")

    def test_state_defaults_to_pending(self, run: SagaRun) -> None:
        ctx = SagaContext(run=run)
        assert ctx.state_of("a") == StepState.PENDING
        ctx.set_state("a", StepState.SKIPPED)
        assert ctx.state_of("a") == StepState.SKIPPED

    @pytest.mark.asyncio
    async def test_attempted_before_looks_at_this_runs_history(self, run: SagaRun) -> None:
        ledger = StepLedger(clock=lambda: DONE)
        ctx = SagaContext(run=run, ledger=ledger)
        seen: list[bool] = []

        async def flaky() -> str:
            seen.append(await ctx.attempted_before("create-branch"))
            if len(seen) == 1:
                raise StepFailureException("connection reset")
            return "fix/CVE-1-1"

        await ledger.get_or_run(run.run_id, "create-branch", flaky)
        await ledger.get_or_run(run.run_id, "create-branch", flaky)

        assert seen == [False, True]

    @pytest.mark.asyncio
    async def test_attempted_before_without_ledger(self, run: SagaRun) -> None:
        assert await SagaContext(run=run).attempted_before("create-branch") is False
