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
"""Shared types for the remediflow.transactional module."""

from __future__ import annotations

from enum import StrEnum


class SagaType(StrEnum):
    """Kinds of saga the runner knows how to execute."""

    SCAN = "SCAN"
    AUTO_FIX = "AUTO_FIX"


class RunStatus(StrEnum):
    """Lifecycle status of a saga run."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCEEDED, RunStatus.FAILED, RunStatus.CANCELLED)


class StepStatus(StrEnum):
    """Status of a step attempt as recorded in the ledger."""

    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class StepState(StrEnum):
    """In-run view of a step, as tracked by the saga context."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class ErrorKind(StrEnum):
    """Classification attached to a failed run."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    STEP_FAILURE = "STEP_FAILURE"
    TERMINAL_STEP_FAILURE = "TERMINAL_STEP_FAILURE"
    TIMEOUT = "TIMEOUT"
    PARTIAL_REMEDIATION = "PARTIAL_REMEDIATION"
    CANCELLED = "CANCELLED"
