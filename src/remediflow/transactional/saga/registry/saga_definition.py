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
"""Saga definition — aggregate root that groups step definitions."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from remediflow.transactional.saga.registry.step_definition import StepDefinition

if TYPE_CHECKING:
    from remediflow.transactional.saga.core.context import SagaContext


@dataclass
class SagaDefinition:
    """Complete definition of a saga, usually produced by :class:`SagaBuilder`.

    Attributes:
        name: Saga name used in logs and events.
        steps: Mapping of step id to its :class:`StepDefinition`, in
            declaration order.
        admission_key: Maps the trigger event to the rate-limiter key, or
            ``None`` to skip admission control.
        output: Builds the run output from the context; defaults to the
            result of the last declared step.
    """

    name: str
    steps: dict[str, StepDefinition] = field(default_factory=dict)
    admission_key: Callable[[Any], str] | None = None
    output: Callable[[SagaContext], Any] | None = None

    def build_output(self, ctx: SagaContext) -> Any:
        if self.output is not None:
            return self.output(ctx)
        last_step = next(reversed(self.steps))
        return ctx.get_result(last_step)
