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
"""OpenTelemetry spans for saga runs and step attempts."""

from __future__ import annotations

from typing import TYPE_CHECKING

from opentelemetry import trace

from remediflow.transactional.shared.types import RunStatus

if TYPE_CHECKING:
    from remediflow.transactional.saga.core.run import SagaRun


class TracingEventsAdapter:
    """``SagaEventsPort`` adapter that records one span per run execution
    and one child span per step attempt.

    Failed attempts set the span status to ``ERROR``; the run span carries
    the final status and, on failure, the error kind. Step spans still open
    when the run completes (attempts outlived by a timeout) are ended then.
    """

    def __init__(self, tracer: trace.Tracer | None = None) -> None:
        self._tracer = tracer or trace.get_tracer("remediflow")
        self._run_spans: dict[tuple[str, int], trace.Span] = {}
        self._step_spans: dict[tuple[str, int, str], trace.Span] = {}

    async def on_start(self, run: SagaRun) -> None:
        span = self._tracer.start_span(
            f"saga {run.saga_type}",
            attributes={
                "saga.type": str(run.saga_type),
                "saga.run_id": run.run_id,
                "saga.execution": run.execution,
            },
        )
        self._run_spans[(run.run_id, run.execution)] = span

    async def on_step_started(self, run: SagaRun, step_name: str) -> None:
        parent = self._run_spans.get((run.run_id, run.execution))
        context = trace.set_span_in_context(parent) if parent is not None else None
        span = self._tracer.start_span(
            f"step {step_name}",
            context=context,
            attributes={"saga.run_id": run.run_id, "saga.step": step_name},
        )
        self._step_spans[(run.run_id, run.execution, step_name)] = span

    async def on_step_success(
        self,
        run: SagaRun,
        step_name: str,
        attempt: int,
        latency_ms: float,
    ) -> None:
        span = self._step_spans.pop((run.run_id, run.execution, step_name), None)
        if span is None:
            return
        span.set_attribute("saga.attempt", attempt)
        span.set_attribute("saga.latency_ms", latency_ms)
        span.end()

    async def on_step_failed(
        self,
        run: SagaRun,
        step_name: str,
        error: str,
        attempt: int,
        terminal: bool,
    ) -> None:
        span = self._step_spans.pop((run.run_id, run.execution, step_name), None)
        if span is None:
            return
        span.set_attribute("saga.attempt", attempt)
        span.set_attribute("saga.terminal", terminal)
        span.set_status(trace.Status(trace.StatusCode.ERROR, error))
        span.end()

    async def on_retry_scheduled(
        self,
        run: SagaRun,
        step_name: str,
        attempt: int,
        delay_seconds: float,
    ) -> None:
        span = self._run_spans.get((run.run_id, run.execution))
        if span is not None:
            span.add_event(
                "retry_scheduled",
                {"saga.step": step_name, "saga.attempt": attempt, "saga.delay_seconds": delay_seconds},
            )

    async def on_completed(self, run: SagaRun) -> None:
        for key in [k for k in self._step_spans if k[:2] == (run.run_id, run.execution)]:
            step_span = self._step_spans.pop(key)
            step_span.set_attribute("saga.unfinished", True)
            step_span.end()

        span = self._run_spans.pop((run.run_id, run.execution), None)
        if span is None:
            return
        span.set_attribute("saga.status", str(run.status))
        if run.status != RunStatus.SUCCEEDED and run.failure is not None:
            span.set_attribute("saga.error_kind", str(run.failure.kind))
            span.set_status(trace.Status(trace.StatusCode.ERROR, run.failure.message))
        span.end()
