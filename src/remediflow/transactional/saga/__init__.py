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
"""Saga module — durable, memoized, retried step execution.

Quick start::

    saga_def = (
        SagaBuilder("scan")
        .step("execute-scan").handler(run_scan).add()
        .step("generate-report").handler(build_report).add()
        .build()
    )
    runner = SagaRunner()
    runner.register(SagaType.SCAN, saga_def)
    run = await runner.run(SagaType.SCAN, event)
"""

from __future__ import annotations

from remediflow.transactional.saga.core.context import SagaContext
from remediflow.transactional.saga.core.run import RunFailure, RunStateError, SagaRun
from remediflow.transactional.saga.engine.execution_orchestrator import (
    SagaExecutionOrchestrator,
    StepGaveUp,
)
from remediflow.transactional.saga.engine.saga_runner import SagaRunner
from remediflow.transactional.saga.engine.topology import SagaTopology
from remediflow.transactional.saga.registry.saga_builder import SagaBuilder, StepBuilder
from remediflow.transactional.saga.registry.saga_definition import SagaDefinition
from remediflow.transactional.saga.registry.step_definition import StepDefinition

__all__ = [
    "RunFailure",
    "RunStateError",
    "SagaBuilder",
    "SagaContext",
    "SagaDefinition",
    "SagaExecutionOrchestrator",
    "SagaRun",
    "SagaRunner",
    "SagaTopology",
    "StepBuilder",
    "StepDefinition",
    "StepGaveUp",
]
