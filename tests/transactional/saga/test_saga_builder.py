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
"""Tests for SagaBuilder — fluent saga definition and validation."""

from __future__ import annotations

import pytest

from remediflow.kernel.exceptions import SagaValidationError
from remediflow.resilience.retry import RetryPolicy
from remediflow.transactional.saga import SagaBuilder, SagaContext
from remediflow.transactional.shared.types import ErrorKind


async def _noop(ctx: SagaContext) -> None:
    return None


class TestSagaBuilder:
    def test_steps_depend_on_previous_by_default(self) -> None:
        saga = (
            SagaBuilder("s")
            .step("a").handler(_noop).add()
            .step("b").handler(_noop).add()
            .step("c").handler(_noop).add()
            .build()
        )
        assert saga.steps["a"].depends_on == []
        assert saga.steps["b"].depends_on == ["a"]
        assert saga.steps["c"].depends_on == ["b"]

    def test_explicit_and_independent_dependencies(self) -> None:
        saga = (
            SagaBuilder("s")
            .step("a").handler(_noop).add()
            .step("b").handler(_noop).independent().add()
            .step("c").handler(_noop).depends_on("a", "b").add()
            .build()
        )
        assert saga.steps["b"].depends_on == []
        assert saga.steps["c"].depends_on == ["a", "b"]

    def test_step_options_are_carried(self) -> None:
        policy = RetryPolicy(max_attempts=5)
        saga = (
            SagaBuilder("s")
            .step("fan").handler(_noop).fan_out(lambda ctx: {"k": 1}).retry(policy).add()
            .step("alert").handler(_noop).when(lambda ctx: True).best_effort().add()
            .step("pr").handler(_noop).on_exhausted(ErrorKind.PARTIAL_REMEDIATION).no_retry().add()
            .build()
        )
        assert saga.steps["fan"].is_fan_out
        assert saga.steps["fan"].retry_policy == policy
        assert saga.steps["fan"].sub_step_name("CVE-1") == "fan:CVE-1"
        assert saga.steps["alert"].best_effort is True
        assert saga.steps["alert"].when is not None
        assert saga.steps["pr"].exhausted_kind == ErrorKind.PARTIAL_REMEDIATION
        assert saga.steps["pr"].retry_policy == RetryPolicy.no_retry()

    def test_empty_saga_is_rejected(self) -> None:
        with pytest.raises(SagaValidationError, match="at least one step"):
            SagaBuilder("s").build()

    def test_missing_handler_is_rejected(self) -> None:
        with pytest.raises(SagaValidationError, match="handler"):
            SagaBuilder("s").step("a").add().build()

    def test_duplicate_step_is_rejected(self) -> None:
        builder = SagaBuilder("s").step("a").handler(_noop).add()
        with pytest.raises(SagaValidationError, match="already exists"):
            builder.step("a").handler(_noop).add()

    def test_unknown_dependency_is_rejected(self) -> None:
        with pytest.raises(SagaValidationError, match="nonexistent"):
            SagaBuilder("s").step("a").handler(_noop).depends_on("ghost").add().build()

    def test_cycle_is_rejected(self) -> None:
        with pytest.raises(SagaValidationError, match="cycle"):
            (
                SagaBuilder("s")
                .step("a").handler(_noop).depends_on("b").add()
                .step("b").handler(_noop).depends_on("a").add()
                .build()
            )

    def test_colon_in_step_id_is_rejected(self) -> None:
        with pytest.raises(SagaValidationError, match="':'"):
            SagaBuilder("s").step("a:b")
