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
"""Step definition — immutable metadata for a single saga step."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from remediflow.resilience.retry import RetryPolicy
from remediflow.transactional.shared.types import ErrorKind

if TYPE_CHECKING:
    from remediflow.transactional.saga.core.context import SagaContext

StepHandler = Callable[..., Awaitable[Any]]
FanOutFn = Callable[["SagaContext"], Mapping[str, Any]]
Predicate = Callable[["SagaContext"], bool]


@dataclass(frozen=True)
class StepDefinition:
    """Immutable descriptor holding all metadata for one saga step.

    Attributes:
        id: Unique step identifier within the saga.
        handler: Coroutine function implementing the step. Called as
            ``handler(ctx)``, or ``handler(ctx, item)`` for fan-out steps.
        depends_on: Step ids that must complete before this step can execute.
        retry_policy: Backoff policy for this step, or ``None`` to use the
            runner's default policy.
        fan_out: For fan-out steps, returns ``{sub_key: item}``; one memoized
            sub-step named ``"<id>:<sub_key>"`` runs per item.
        when: Predicate deciding whether the step runs; ``False`` skips it.
        best_effort: If ``True``, exhausting retries is recorded as a run
            warning instead of failing the run.
        exhausted_kind: Error kind reported when retries are exhausted,
            overriding the default ``STEP_FAILURE``.
    """

    id: str
    handler: StepHandler | None = None
    depends_on: list[str] = field(default_factory=list)
    retry_policy: RetryPolicy | None = None
    fan_out: FanOutFn | None = None
    when: Predicate | None = None
    best_effort: bool = False
    exhausted_kind: ErrorKind | None = None

    @property
    def is_fan_out(self) -> bool:
        return self.fan_out is not None

    def sub_step_name(self, sub_key: str) -> str:
        return f"{self.id}:{sub_key}"
