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
"""Saga builder — fluent DSL for programmatic saga creation.

Example::

    saga_def = (
        SagaBuilder("scan")
        .step("execute-scan").handler(run_scan).retry(RetryPolicy(max_attempts=3)).add()
        .step("process").handler(process_one).depends_on("execute-scan")
            .fan_out(lambda ctx: {v["id"]: v for v in ctx.result("execute-scan")}).add()
        .step("alert").handler(send_alert).depends_on("process")
            .when(lambda ctx: bool(ctx.result("process"))).best_effort().add()
        .admission_key(lambda event: event.user_id or "anonymous")
        .build()
    )

By default every step depends on the step declared before it; call
:meth:`StepBuilder.depends_on` to declare the dependencies explicitly and
:meth:`StepBuilder.independent` for a step with none.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from remediflow.kernel.exceptions import SagaValidationError
from remediflow.resilience.retry import RetryPolicy
from remediflow.transactional.saga.engine.topology import SagaTopology
from remediflow.transactional.saga.registry.saga_definition import SagaDefinition
from remediflow.transactional.saga.registry.step_definition import (
    FanOutFn,
    Predicate,
    StepDefinition,
    StepHandler,
)
from remediflow.transactional.shared.types import ErrorKind


class StepBuilder:
    """Builder for individual step configuration.

    Call :meth:`add` to finalise the step and return the parent
    :class:`SagaBuilder` for continued chaining.
    """

    def __init__(self, step_id: str, parent: SagaBuilder) -> None:
        self._step_id = step_id
        self._parent = parent
        self._handler_fn: StepHandler | None = None
        self._depends_on: list[str] | None = None
        self._retry_policy: RetryPolicy | None = None
        self._fan_out: FanOutFn | None = None
        self._when: Predicate | None = None
        self._best_effort: bool = False
        self._exhausted_kind: ErrorKind | None = None

    # ── Fluent setters ────────────────────────────────────────

    def handler(self, func: StepHandler) -> StepBuilder:
        """Set the coroutine function implementing this step."""
        self._handler_fn = func
        return self

    def depends_on(self, *step_ids: str) -> StepBuilder:
        """Declare dependency on one or more preceding steps."""
        self._depends_on = [*(self._depends_on or []), *step_ids]
        return self

    def independent(self) -> StepBuilder:
        """Declare that this step has no dependencies."""
        self._depends_on = []
        return self

    def retry(self, policy: RetryPolicy) -> StepBuilder:
        """Override the runner's default retry policy for this step."""
        self._retry_policy = policy
        return self

    def no_retry(self) -> StepBuilder:
        """Attempt this step exactly once."""
        self._retry_policy = RetryPolicy.no_retry()
        return self

    def fan_out(self, items: FanOutFn) -> StepBuilder:
        """Run the handler once per item returned by *items* (``{sub_key: item}``)."""
        self._fan_out = items
        return self

    def when(self, predicate: Predicate) -> StepBuilder:
        """Only run this step when *predicate(ctx)* is true."""
        self._when = predicate
        return self

    def best_effort(self, enabled: bool = True) -> StepBuilder:
        """Record exhaustion as a warning instead of failing the run."""
        self._best_effort = enabled
        return self

    def on_exhausted(self, kind: ErrorKind) -> StepBuilder:
        """Report *kind* instead of ``STEP_FAILURE`` when retries run out."""
        self._exhausted_kind = kind
        return self

    # ── Finalisation ──────────────────────────────────────────

    def add(self) -> SagaBuilder:
        """Finalise this step and return the parent builder for chaining."""
        self._parent._add_step(self)  # noqa: SLF001
        return self._parent

    def _build_definition(self, previous: str | None) -> StepDefinition:
        if self._depends_on is None:
            depends_on = [previous] if previous is not None else []
        else:
            depends_on = list(self._depends_on)
        return StepDefinition(
            id=self._step_id,
            handler=self._handler_fn,
            depends_on=depends_on,
            retry_policy=self._retry_policy,
            fan_out=self._fan_out,
            when=self._when,
            best_effort=self._best_effort,
            exhausted_kind=self._exhausted_kind,
        )


class SagaBuilder:
    """Fluent builder for programmatic saga definition.

    Use :meth:`step` to begin configuring a step, chain configuration
    methods, call ``.add()`` to finalise, and repeat. Call :meth:`build`
    to validate and produce the :class:`SagaDefinition`.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._step_builders: list[StepBuilder] = []
        self._step_ids: set[str] = set()
        self._admission_key: Callable[[Any], str] | None = None
        self._output: Callable[..., Any] | None = None

    def step(self, step_id: str) -> StepBuilder:
        """Begin configuring a new step with the given *step_id*."""
        if ":" in step_id:
            raise SagaValidationError(
                f"Step id '{step_id}' in saga '{self._name}' must not contain ':'"
            )
        return StepBuilder(step_id, self)

    def admission_key(self, key_fn: Callable[[Any], str]) -> SagaBuilder:
        """Derive the rate-limiter key from the trigger event."""
        self._admission_key = key_fn
        return self

    def output(self, output_fn: Callable[..., Any]) -> SagaBuilder:
        """Build the run output from the context once every step succeeded."""
        self._output = output_fn
        return self

    def build(self) -> SagaDefinition:
        """Validate and produce the final :class:`SagaDefinition`.

        Raises:
            SagaValidationError: If the saga has no steps, a step is missing
                a handler, dependencies reference nonexistent steps, or the
                dependency graph contains a cycle.
        """
        if not self._step_builders:
            raise SagaValidationError(f"Saga '{self._name}' must have at least one step")

        definition = SagaDefinition(
            name=self._name,
            admission_key=self._admission_key,
            output=self._output,
        )

        previous: str | None = None
        for sb in self._step_builders:
            step_def = sb._build_definition(previous)  # noqa: SLF001
            if step_def.handler is None:
                raise SagaValidationError(
                    f"Step '{step_def.id}' in saga '{self._name}' must have a handler"
                )
            definition.steps[step_def.id] = step_def
            previous = step_def.id

        self._validate_dag(definition)
        return definition

    # ── Internal helpers ──────────────────────────────────────

    def _add_step(self, step_builder: StepBuilder) -> None:
        step_id = step_builder._step_id  # noqa: SLF001
        if step_id in self._step_ids:
            raise SagaValidationError(f"Step '{step_id}' already exists in saga '{self._name}'")
        self._step_ids.add(step_id)
        self._step_builders.append(step_builder)

    @staticmethod
    def _validate_dag(definition: SagaDefinition) -> None:
        """Check dependency references exist and the graph is acyclic."""
        for step_id, step_def in definition.steps.items():
            for dep in step_def.depends_on:
                if dep not in definition.steps:
                    raise SagaValidationError(
                        f"Step '{step_id}' in saga '{definition.name}' depends on '{dep}' which is nonexistent"
                    )

        try:
            SagaTopology.compute_layers(
                {step_id: list(step_def.depends_on) for step_id, step_def in definition.steps.items()}
            )
        except ValueError as exc:
            raise SagaValidationError(f"Saga '{definition.name}' is invalid: {exc}") from exc
