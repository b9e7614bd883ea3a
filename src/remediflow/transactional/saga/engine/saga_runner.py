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
"""Saga runner — admission, run lifecycle, timeouts and re-entry of saga runs."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from remediflow.kernel.exceptions import (
    RateLimitException,
    SagaCancelledException,
    SagaTimeoutException,
)
from remediflow.resilience.rate_limiter import SlidingWindowRateLimiter
from remediflow.resilience.retry import RetryPolicy
from remediflow.transactional.ledger.step_ledger import StepLedger
from remediflow.transactional.saga.core.context import SagaContext
from remediflow.transactional.saga.core.run import RunFailure, RunStateError, SagaRun
from remediflow.transactional.saga.engine.execution_orchestrator import (
    SagaExecutionOrchestrator,
    StepGaveUp,
)
from remediflow.transactional.saga.registry.saga_definition import SagaDefinition
from remediflow.transactional.shared.observability.events import CompositeEventsAdapter
from remediflow.transactional.shared.ports.outbound import SagaEventsPort
from remediflow.transactional.shared.types import ErrorKind, RunStatus, SagaType

logger = logging.getLogger(__name__)

DEFAULT_RUN_TIMEOUT = timedelta(minutes=30)
DEFAULT_RETAINED_RUNS = 1000


class SagaRunner:
    """Starts, tracks and re-enters saga runs.

    Every run is admitted through the rate limiter (when its saga defines an
    admission key), then executed in a background task bounded by the run
    timeout. Step execution is delegated to :class:`SagaExecutionOrchestrator`
    and memoized in the :class:`StepLedger`, so :meth:`retry` re-runs only
    the steps that have not yet succeeded.

    Args:
        ledger: Step ledger shared by every run.
        rate_limiter: Admission control; ``None`` admits everything.
        retry_policy: Default policy for steps that declare none.
        events: Lifecycle sinks. Their failures are logged and ignored.
        run_timeout: Wall-clock budget of one execution, or ``None``.
        retained_runs: Number of runs kept in memory. Beyond it the oldest
            finished runs are forgotten; their ledger records remain.
            ``None`` keeps every run.
        clock: Source of the current time.
        sleep: Coroutine used to wait out retry delays.
    """

    def __init__(
        self,
        ledger: StepLedger | None = None,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        retry_policy: RetryPolicy | None = None,
        events: SagaEventsPort | list[SagaEventsPort] | None = None,
        run_timeout: timedelta | None = DEFAULT_RUN_TIMEOUT,
        retained_runs: int | None = DEFAULT_RETAINED_RUNS,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._ledger = ledger or StepLedger(clock=self._clock)
        self._rate_limiter = rate_limiter
        self._run_timeout = run_timeout
        self._retained_runs = retained_runs
        if events is None:
            sinks: list[SagaEventsPort] = []
        elif isinstance(events, list):
            sinks = events
        else:
            sinks = [events]
        self._events = CompositeEventsAdapter(*sinks)
        self._orchestrator = SagaExecutionOrchestrator(
            self._ledger, retry_policy or RetryPolicy(), self._events, sleep=sleep,
        )

        self._definitions: dict[SagaType, SagaDefinition] = {}
        self._executions: dict[str, list[SagaRun]] = {}
        self._tasks: dict[str, asyncio.Task[SagaRun]] = {}
        self._cancel_requested: set[str] = set()
        self._last_created_at: datetime | None = None

    @property
    def ledger(self) -> StepLedger:
        return self._ledger

    # ── Registration ──────────────────────────────────────────

    def register(self, saga_type: SagaType, definition: SagaDefinition) -> None:
        if saga_type in self._definitions:
            raise ValueError(f"A saga is already registered for '{saga_type}'")
        self._definitions[saga_type] = definition

    def definition(self, saga_type: SagaType) -> SagaDefinition:
        try:
            return self._definitions[saga_type]
        except KeyError:
            raise ValueError(f"No saga registered for '{saga_type}'") from None

    # ── Starting and awaiting runs ────────────────────────────

    async def start(
        self,
        saga_type: SagaType,
        trigger_event: Any,
        *,
        run_id: str | None = None,
    ) -> SagaRun:
        """Admit and start a new run without waiting for it to finish.

        A run rejected by the rate limiter is returned already ``FAILED``
        with a ``RATE_LIMITED`` failure carrying ``retry_after``.
        """
        saga_def = self.definition(saga_type)
        run_id = run_id or uuid.uuid4().hex
        if run_id in self._executions:
            raise ValueError(f"Run {run_id} already exists; use retry() to re-enter it")

        run = SagaRun(
            run_id=run_id,
            saga_type=saga_type,
            trigger_event=trigger_event,
            created_at=self._next_created_at(),
        )
        self._executions[run_id] = [run]
        self._evict_finished()
        return await self._admit_and_launch(run, saga_def)

    async def run(
        self,
        saga_type: SagaType,
        trigger_event: Any,
        *,
        run_id: str | None = None,
    ) -> SagaRun:
        """Start a run and wait until it reaches a terminal status."""
        run = await self.start(saga_type, trigger_event, run_id=run_id)
        return await self.wait(run.run_id)

    async def wait(self, run_id: str) -> SagaRun:
        """Wait for the latest execution of *run_id* to finish."""
        task = self._tasks.get(run_id)
        if task is not None:
            return await task
        return self.get_run(run_id)

    async def retry(self, run_id: str, *, wait: bool = True) -> SagaRun:
        """Re-enter a finished run under the same ``run_id``.

        Steps that already succeeded replay their stored results; the others
        start a fresh attempt budget. Re-entering a succeeded run returns it
        unchanged.

        Raises:
            RunStateError: If the run is still in progress.
            KeyError: If the run is unknown or was evicted.
        """
        latest = self.get_run(run_id)
        if not latest.is_terminal:
            raise RunStateError(f"Run {run_id} is still {latest.status}")
        if latest.status == RunStatus.SUCCEEDED:
            return latest
        await self._orchestrator.settle(run_id)

        saga_def = self.definition(latest.saga_type)
        run = latest.next_execution()
        self._executions[run_id] = [*self._executions.pop(run_id), run]
        self._cancel_requested.discard(run_id)
        logger.info("Re-entering run %s (execution %d)", run_id, run.execution)

        run = await self._admit_and_launch(run, saga_def)
        if wait:
            return await self.wait(run_id)
        return run

    def cancel(self, run_id: str) -> bool:
        """Request cancellation; honoured before the next step layer starts.

        Returns ``False`` when the run already finished.
        """
        run = self.get_run(run_id)
        if run.is_terminal:
            return False
        self._cancel_requested.add(run_id)
        return True

    async def shutdown(self) -> None:
        """Cancel every in-flight run task and step attempt."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        await self._orchestrator.abandon()

    # ── Queries ───────────────────────────────────────────────

    def get_run(self, run_id: str) -> SagaRun:
        """Return the latest execution of *run_id*.

        Raises:
            KeyError: If the run is unknown or was evicted.
        """
        try:
            return self._executions[run_id][-1]
        except KeyError:
            raise KeyError(f"Unknown run {run_id}") from None

    def executions(self, run_id: str) -> list[SagaRun]:
        return list(self._executions.get(run_id, []))

    def runs(self) -> list[SagaRun]:
        return [history[-1] for history in self._executions.values()]

    # ── Internals ─────────────────────────────────────────────

    def _next_created_at(self) -> datetime:
        """Millisecond-precision creation time, strictly increasing per runner."""
        now = self._clock()
        now = now.replace(microsecond=now.microsecond - now.microsecond % 1000)
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(milliseconds=1)
        self._last_created_at = now
        return now

    def _evict_finished(self) -> None:
        if self._retained_runs is None:
            return
        excess = len(self._executions) - self._retained_runs
        if excess <= 0:
            return
        for run_id in [rid for rid, history in self._executions.items() if history[-1].is_terminal][:excess]:
            del self._executions[run_id]
            logger.debug("Evicted finished run %s", run_id)

    async def _admit_and_launch(self, run: SagaRun, saga_def: SagaDefinition) -> SagaRun:
        if self._rate_limiter is not None and saga_def.admission_key is not None:
            key = saga_def.admission_key(run.trigger_event)
            try:
                await self._rate_limiter.acquire(key, self._clock())
            except RateLimitException as exc:
                run.fail(
                    RunFailure(
                        kind=ErrorKind.RATE_LIMITED,
                        message=str(exc),
                        retry_after=exc.retry_after,
                    ),
                    at=self._clock(),
                )
                await self._events.on_completed(run)
                return run

        run.mark_running()
        await self._events.on_start(run)
        task = asyncio.create_task(self._execute(run, saga_def), name=f"saga-run-{run.run_id}")
        self._tasks[run.run_id] = task
        task.add_done_callback(lambda _t, run_id=run.run_id: self._forget_task(run_id, _t))
        return run

    def _forget_task(self, run_id: str, task: asyncio.Task[SagaRun]) -> None:
        if self._tasks.get(run_id) is task:
            del self._tasks[run_id]

    async def _bounded(self, execution: Awaitable[None]) -> None:
        """Await *execution* within the run timeout.

        On timeout the execution is cancelled, but step attempts already
        dispatched keep running in the background until their outcome is
        in the ledger.
        """
        if self._run_timeout is None:
            await execution
            return
        try:
            await asyncio.wait_for(execution, timeout=self._run_timeout.total_seconds())
        except TimeoutError as exc:
            raise SagaTimeoutException(
                f"Run exceeded its timeout of {self._run_timeout}", code="TIMEOUT",
            ) from exc

    async def _execute(self, run: SagaRun, saga_def: SagaDefinition) -> SagaRun:
        ctx = SagaContext(run=run, clock=self._clock, ledger=self._ledger)
        execution = self._orchestrator.execute(
            saga_def, ctx, lambda: run.run_id in self._cancel_requested,
        )

        try:
            await self._bounded(execution)
            output = saga_def.build_output(ctx)
        except SagaTimeoutException as exc:
            run.fail(RunFailure(kind=ErrorKind.TIMEOUT, message=str(exc)), at=self._clock())
        except SagaCancelledException as exc:
            run.cancel(RunFailure(kind=ErrorKind.CANCELLED, message=str(exc)), at=self._clock())
        except StepGaveUp as exc:
            run.fail(exc.failure, at=self._clock())
        except Exception as exc:
            logger.exception("Run %s of saga '%s' crashed", run.run_id, saga_def.name)
            run.fail(
                RunFailure(kind=ErrorKind.STEP_FAILURE, message=f"{type(exc).__name__}: {exc}"),
                at=self._clock(),
            )
        else:
            run.succeed(output, at=self._clock())
        finally:
            self._cancel_requested.discard(run.run_id)

        await self._events.on_completed(run)
        return run
