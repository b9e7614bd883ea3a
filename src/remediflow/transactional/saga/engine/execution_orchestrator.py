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
"""Saga execution orchestrator — layered execution of memoized, retried steps."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from remediflow.kernel.exceptions import SagaCancelledException
from remediflow.resilience.retry import GiveUp, RetryPolicy
from remediflow.transactional.ledger.records import StepRecord
from remediflow.transactional.ledger.step_ledger import StepLedger
from remediflow.transactional.saga.core.context import SagaContext
from remediflow.transactional.saga.core.run import RunFailure
from remediflow.transactional.saga.engine.topology import SagaTopology
from remediflow.transactional.saga.registry.saga_definition import SagaDefinition
from remediflow.transactional.saga.registry.step_definition import StepDefinition
from remediflow.transactional.shared.observability.events import CompositeEventsAdapter
from remediflow.transactional.shared.types import ErrorKind, StepState

logger = logging.getLogger(__name__)


class StepGaveUp(Exception):
    """A step (or one of its fan-out sub-steps) exhausted its retry policy."""

    def __init__(self, failure: RunFailure) -> None:
        super().__init__(failure.message)
        self.failure = failure


class SagaExecutionOrchestrator:
    """Executes saga steps layer by layer through the step ledger.

    Steps of one dependency layer run concurrently and every one of them runs
    to completion before the next layer starts. Each step attempt goes
    through :meth:`StepLedger.get_or_run`; on failure the step's
    :class:`RetryPolicy` decides between sleeping (which suspends only that
    step's coroutine) and giving up.

    An attempt that has been dispatched always runs to completion and records
    its outcome, even when the execution awaiting it is cancelled by the run
    timeout. :meth:`settle` waits for such attempts before a run is re-entered.
    """

    def __init__(
        self,
        ledger: StepLedger,
        default_policy: RetryPolicy,
        events: CompositeEventsAdapter,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._ledger = ledger
        self._default_policy = default_policy
        self._events = events
        self._sleep = sleep
        self._in_flight: dict[str, set[asyncio.Task[StepRecord]]] = {}

    async def execute(
        self,
        saga_def: SagaDefinition,
        ctx: SagaContext,
        cancel_requested: Callable[[], bool] = lambda: False,
    ) -> None:
        """Execute all saga steps in dependency order.

        Raises:
            StepGaveUp: A non best-effort step exhausted its retries.
            SagaCancelledException: Cancellation was requested between layers.
        """
        deps = {step_id: list(step_def.depends_on) for step_id, step_def in saga_def.steps.items()}
        ctx.topology_layers = SagaTopology.compute_layers(deps)

        for layer in ctx.topology_layers:
            if cancel_requested():
                raise SagaCancelledException(
                    f"Run {ctx.run_id} cancelled before '{layer[0]}'",
                    code="CANCELLED",
                    context={"next_steps": list(layer)},
                )

            outcomes = await asyncio.gather(
                *(self._execute_step(saga_def.steps[step_id], ctx) for step_id in layer),
                return_exceptions=True,
            )
            _raise_first(outcomes)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _execute_step(self, step_def: StepDefinition, ctx: SagaContext) -> None:
        if step_def.when is not None and not step_def.when(ctx):
            logger.debug("Skipping step '%s' in run %s", step_def.id, ctx.run_id)
            ctx.set_state(step_def.id, StepState.SKIPPED)
            return

        ctx.set_state(step_def.id, StepState.RUNNING)
        policy = step_def.retry_policy or self._default_policy

        try:
            if step_def.fan_out is not None:
                result = await self._execute_fan_out(step_def, ctx, policy)
            else:
                result = await self._run_with_retry(
                    ctx, step_def, step_def.id, lambda: step_def.handler(ctx), policy,  # type: ignore[misc]
                )
        except StepGaveUp as exc:
            ctx.set_state(step_def.id, StepState.FAILED)
            if not step_def.best_effort:
                raise
            logger.warning(
                "Best-effort step '%s' gave up in run %s: %s",
                step_def.id,
                ctx.run_id,
                exc.failure.message,
            )
            ctx.run.add_warning(exc.failure)
            return

        ctx.set_result(step_def.id, result)
        ctx.set_state(step_def.id, StepState.DONE)

    async def _execute_fan_out(
        self,
        step_def: StepDefinition,
        ctx: SagaContext,
        policy: RetryPolicy,
    ) -> dict[str, Any]:
        """Run one memoized sub-step per item and join the results.

        All siblings run to completion, so the successes of the others are
        kept in the ledger even when one of them gives up.
        """
        items = dict(step_def.fan_out(ctx))  # type: ignore[misc]

        async def _sub_step(sub_key: str, item: Any) -> Any:
            return await self._run_with_retry(
                ctx,
                step_def,
                step_def.sub_step_name(sub_key),
                lambda: step_def.handler(ctx, item),  # type: ignore[misc]
                policy,
            )

        outcomes = await asyncio.gather(
            *(_sub_step(sub_key, item) for sub_key, item in items.items()),
            return_exceptions=True,
        )
        _raise_first(outcomes)
        return dict(zip(items.keys(), outcomes, strict=True))

    async def _run_with_retry(
        self,
        ctx: SagaContext,
        step_def: StepDefinition,
        step_name: str,
        attempt_fn: Callable[[], Awaitable[Any]],
        policy: RetryPolicy,
    ) -> Any:
        run = ctx.run

        while True:
            invoked = False
            start = time.monotonic()

            async def _attempt() -> Any:
                nonlocal invoked, start
                invoked = True
                await self._events.on_step_started(run, step_name)
                start = time.monotonic()
                return await attempt_fn()

            record = await self._dispatch(run.run_id, step_name, _attempt, run.execution)
            latency_ms = (time.monotonic() - start) * 1000

            if record.succeeded:
                ctx.step_attempts[step_name] = record.attempt
                if invoked:
                    await self._events.on_step_success(run, step_name, record.attempt, latency_ms)
                return record.result

            failures = await self._ledger.failed_attempts(run.run_id, step_name, run.execution)
            ctx.step_attempts[step_name] = failures
            await self._events.on_step_failed(
                run, step_name, record.error or "", record.attempt, record.terminal,
            )

            decision = policy.next_delay(step_name, failures, terminal=record.terminal)
            if isinstance(decision, GiveUp):
                raise StepGaveUp(RunFailure(
                    kind=self._exhausted_kind(step_def, record.terminal),
                    message=f"{record.error_type}: {record.error}",
                    step_name=step_name,
                    attempts=failures,
                ))

            delay = decision.total_seconds()
            logger.info(
                "Step '%s' failed (attempt %d) in run %s; retrying in %.3fs",
                step_name,
                record.attempt,
                run.run_id,
                delay,
            )
            await self._events.on_retry_scheduled(run, step_name, record.attempt, delay)
            await self._sleep(delay)

    @staticmethod
    def _exhausted_kind(step_def: StepDefinition, terminal: bool) -> ErrorKind:
        if step_def.exhausted_kind is not None:
            return step_def.exhausted_kind
        return ErrorKind.TERMINAL_STEP_FAILURE if terminal else ErrorKind.STEP_FAILURE

    # ------------------------------------------------------------------
    # In-flight attempts
    # ------------------------------------------------------------------

    async def _dispatch(
        self,
        run_id: str,
        step_name: str,
        attempt_fn: Callable[[], Awaitable[Any]],
        execution: int,
    ) -> StepRecord:
        task = asyncio.create_task(
            self._ledger.get_or_run(run_id, step_name, attempt_fn, execution=execution),
            name=f"saga-step-{run_id}-{step_name}",
        )
        tasks = self._in_flight.setdefault(run_id, set())
        tasks.add(task)
        task.add_done_callback(lambda t: self._discard(run_id, t))
        return await asyncio.shield(task)

    def _discard(self, run_id: str, task: asyncio.Task[StepRecord]) -> None:
        tasks = self._in_flight.get(run_id)
        if tasks is None:
            return
        tasks.discard(task)
        if not tasks:
            del self._in_flight[run_id]

    async def settle(self, run_id: str) -> None:
        """Wait until every dispatched attempt of *run_id* has been recorded."""
        tasks = list(self._in_flight.get(run_id, ()))
        if tasks:
            logger.info("Waiting for %d in-flight attempt(s) of run %s", len(tasks), run_id)
            await asyncio.gather(*tasks, return_exceptions=True)

    async def abandon(self) -> None:
        """Cancel every in-flight attempt of every run."""
        tasks = [task for tasks in self._in_flight.values() for task in tasks]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def _raise_first(outcomes: list[Any]) -> None:
    """Re-raise the first exception among gathered *outcomes*, preferring give-ups."""
    errors = [o for o in outcomes if isinstance(o, BaseException)]
    if not errors:
        return
    for error in errors:
        if isinstance(error, StepGaveUp):
            raise error
    raise errors[0]
