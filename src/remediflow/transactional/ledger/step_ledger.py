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
"""Step ledger — memoized step execution over an append-only outcome log."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from remediflow.kernel.exceptions import RemediflowException
from remediflow.transactional.ledger.memory import InMemoryLedgerStore
from remediflow.transactional.ledger.records import (
    StepRecord,
    count_failures,
    find_success,
    next_attempt,
)
from remediflow.transactional.shared.ports.outbound import LedgerStorePort
from remediflow.transactional.shared.types import StepStatus

logger = logging.getLogger(__name__)


def is_terminal_error(exc: BaseException) -> bool:
    """Whether *exc* must bypass the retry schedule."""
    return isinstance(exc, RemediflowException) and not exc.retryable


class StepLedger:
    """Memoizes step outcomes per ``(run_id, step_name)``.

    :meth:`get_or_run` consults the log before every execution. Once a
    ``SUCCEEDED`` record exists the attempt function is never invoked again
    for that step, so its side effect happens at most once however many
    times the saga is re-entered.
    """

    def __init__(
        self,
        store: LedgerStorePort | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store: LedgerStorePort = store or InMemoryLedgerStore()
        self._clock = clock or (lambda: datetime.now(UTC))

    @property
    def store(self) -> LedgerStorePort:
        return self._store

    async def get_or_run(
        self,
        run_id: str,
        step_name: str,
        attempt_fn: Callable[[], Awaitable[Any]],
        *,
        execution: int = 1,
    ) -> StepRecord:
        """Return the stored success for the step, or run one new attempt.

        Step errors are never raised: a failed attempt is appended as a
        ``FAILED`` record (``terminal=True`` for non-retryable errors) and
        returned so the caller can decide whether to retry.
        """
        history = await self._store.history(run_id, step_name)
        previous = find_success(history)
        if previous is not None:
            logger.debug("Replaying stored result for %s/%s", run_id, step_name)
            return previous

        attempt = next_attempt(history)
        started_at = self._clock()
        await self._store.append(StepRecord(
            run_id=run_id,
            step_name=step_name,
            attempt=attempt,
            execution=execution,
            status=StepStatus.PENDING,
            started_at=started_at,
        ))

        try:
            result = await attempt_fn()
        except Exception as exc:
            record = StepRecord(
                run_id=run_id,
                step_name=step_name,
                attempt=attempt,
                execution=execution,
                status=StepStatus.FAILED,
                started_at=started_at,
                error=str(exc) or type(exc).__name__,
                error_type=type(exc).__name__,
                terminal=is_terminal_error(exc),
                finished_at=self._clock(),
            )
            await self._store.append(record)
            return record

        record = StepRecord(
            run_id=run_id,
            step_name=step_name,
            attempt=attempt,
            execution=execution,
            status=StepStatus.SUCCEEDED,
            started_at=started_at,
            result=result,
            finished_at=self._clock(),
        )
        await self._store.append(record)
        return record

    async def history(self, run_id: str, step_name: str) -> list[StepRecord]:
        return await self._store.history(run_id, step_name)

    async def records(self, run_id: str) -> list[StepRecord]:
        return await self._store.records(run_id)

    async def succeeded(self, run_id: str, step_name: str) -> bool:
        """Whether ``(run_id, step_name)`` already has a SUCCEEDED record."""
        return find_success(await self._store.history(run_id, step_name)) is not None

    async def failed_attempts(
        self,
        run_id: str,
        step_name: str,
        execution: int | None = None,
    ) -> int:
        """Count FAILED attempts for the step, optionally within one execution."""
        return count_failures(await self._store.history(run_id, step_name), execution)
