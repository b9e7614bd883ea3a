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
"""Observability adapters for saga lifecycle events.

This module provides two ``SagaEventsPort`` implementations:

* :class:`LoggerEventsAdapter` -- writes a structlog event for every lifecycle
  event emitted by the saga runner.
* :class:`CompositeEventsAdapter` -- fans-out each event to an ordered
  sequence of child adapters, absorbing individual adapter failures so that
  a broken sink never changes the outcome of a run.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import structlog

from remediflow.transactional.shared.ports.outbound import SagaEventsPort
from remediflow.transactional.shared.types import RunStatus

if TYPE_CHECKING:
    from remediflow.transactional.saga.core.run import SagaRun

_logger = logging.getLogger("remediflow.transactional.events")


# ---------------------------------------------------------------------------
# LoggerEventsAdapter
# ---------------------------------------------------------------------------


class LoggerEventsAdapter:
    """Logs saga lifecycle events as structlog key/value events.

    Events are bound to ``saga_type``, ``run_id`` and ``execution`` so every
    line of a run can be correlated. Progress logs at ``info``; failed
    attempts and unsuccessful runs log at ``warning``.
    """

    def __init__(self, logger: Any = None) -> None:
        self._log = logger or structlog.get_logger("remediflow.transactional.events")

    def _bind(self, run: SagaRun) -> Any:
        return self._log.bind(saga_type=str(run.saga_type), run_id=run.run_id, execution=run.execution)

    async def on_start(self, run: SagaRun) -> None:
        self._bind(run).info("saga_started")

    async def on_step_started(self, run: SagaRun, step_name: str) -> None:
        self._bind(run).debug("step_started", step=step_name)

    async def on_step_success(
        self,
        run: SagaRun,
        step_name: str,
        attempt: int,
        latency_ms: float,
    ) -> None:
        self._bind(run).info(
            "step_succeeded", step=step_name, attempt=attempt, latency_ms=round(latency_ms, 1),
        )

    async def on_step_failed(
        self,
        run: SagaRun,
        step_name: str,
        error: str,
        attempt: int,
        terminal: bool,
    ) -> None:
        self._bind(run).warning(
            "step_failed", step=step_name, attempt=attempt, terminal=terminal, error=error,
        )

    async def on_retry_scheduled(
        self,
        run: SagaRun,
        step_name: str,
        attempt: int,
        delay_seconds: float,
    ) -> None:
        self._bind(run).info(
            "retry_scheduled", step=step_name, after_attempt=attempt, delay_seconds=delay_seconds,
        )

    async def on_completed(self, run: SagaRun) -> None:
        log = self._bind(run)
        if run.status == RunStatus.SUCCEEDED:
            log.info("saga_completed", status=str(run.status), warnings=len(run.warnings))
            return
        failure = run.failure
        log.warning(
            "saga_completed",
            status=str(run.status),
            kind=str(failure.kind) if failure else None,
            step=failure.step_name if failure else None,
            attempts=failure.attempts if failure else 0,
            error=failure.message if failure else None,
        )


# ---------------------------------------------------------------------------
# CompositeEventsAdapter
# ---------------------------------------------------------------------------


class CompositeEventsAdapter:
    """Broadcasts saga events to multiple ``SagaEventsPort`` adapters.

    If an individual adapter raises an exception, the error is logged and
    the remaining adapters still receive the event. The composite itself
    never raises.

    Args:
        *adapters: Zero or more :class:`SagaEventsPort` implementations to
            broadcast events to.
    """

    def __init__(self, *adapters: SagaEventsPort) -> None:
        self._adapters: Sequence[SagaEventsPort] = adapters

    @property
    def adapters(self) -> Sequence[SagaEventsPort]:
        return self._adapters

    # -- internal broadcast helper ------------------------------------------

    async def _broadcast(self, method: str, *args: object, **kwargs: object) -> None:
        for adapter in self._adapters:
            try:
                await getattr(adapter, method)(*args, **kwargs)
            except Exception:
                _logger.error(
                    "Events adapter %r failed on %s",
                    adapter,
                    method,
                    exc_info=True,
                )

    # -- SagaEventsPort interface -------------------------------------------

    async def on_start(self, run: SagaRun) -> None:
        await self._broadcast("on_start", run)

    async def on_step_started(self, run: SagaRun, step_name: str) -> None:
        await self._broadcast("on_step_started", run, step_name)

    async def on_step_success(
        self,
        run: SagaRun,
        step_name: str,
        attempt: int,
        latency_ms: float,
    ) -> None:
        await self._broadcast(
            "on_step_success", run, step_name, attempt=attempt, latency_ms=latency_ms,
        )

    async def on_step_failed(
        self,
        run: SagaRun,
        step_name: str,
        error: str,
        attempt: int,
        terminal: bool,
    ) -> None:
        await self._broadcast(
            "on_step_failed", run, step_name, error=error, attempt=attempt, terminal=terminal,
        )

    async def on_retry_scheduled(
        self,
        run: SagaRun,
        step_name: str,
        attempt: int,
        delay_seconds: float,
    ) -> None:
        await self._broadcast(
            "on_retry_scheduled", run, step_name, attempt=attempt, delay_seconds=delay_seconds,
        )

    async def on_completed(self, run: SagaRun) -> None:
        await self._broadcast("on_completed", run)
