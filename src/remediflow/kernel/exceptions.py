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
"""Unified exception hierarchy for remediflow.

All errors inherit from RemediflowException so callers can catch the whole
family at once or target a specific subclass.

Categories:
- BusinessException: Validation errors and conflicting state
- InfrastructureException: Admission, timeout and cancellation failures
- StepException: Failures raised from inside a saga step
"""

from __future__ import annotations

from datetime import timedelta

# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class RemediflowException(Exception):
    """Base exception for all remediflow errors.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "VALIDATION_ERROR").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    retryable: bool = True

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict = context if context is not None else {}


# ---------------------------------------------------------------------------
# Business
# ---------------------------------------------------------------------------


class BusinessException(RemediflowException):
    """Domain rule violations and business logic errors."""


class ValidationException(BusinessException):
    """Input validation failures. Raised before any saga run is created."""

    retryable = False


class ConflictException(BusinessException):
    """Operation conflicts with current state (e.g. duplicate resource)."""


class BranchAlreadyExistsException(ConflictException):
    """The source-control host already has a ref with the requested name."""


class BranchConflictException(ConflictException):
    """A fix branch name is already taken by a branch another run created."""

    retryable = False


class SagaValidationError(BusinessException):
    """A saga definition is malformed (missing handler, cycle, unknown dependency)."""

    retryable = False


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


class InfrastructureException(RemediflowException):
    """Failures of the execution machinery or its collaborators."""


class RateLimitException(InfrastructureException):
    """Trigger admission was rejected by the rate limiter."""

    def __init__(
        self,
        message: str,
        retry_after: timedelta,
        code: str | None = "RATE_LIMITED",
        context: dict | None = None,
    ) -> None:
        super().__init__(message, code=code, context=context)
        self.retry_after = retry_after


class SagaTimeoutException(InfrastructureException):
    """A saga run exceeded its overall time budget."""


class SagaCancelledException(InfrastructureException):
    """A saga run was cancelled between steps."""


# ---------------------------------------------------------------------------
# Step failures
# ---------------------------------------------------------------------------


class StepException(RemediflowException):
    """Base class for errors raised from inside a saga step."""


class StepFailureException(StepException):
    """A transient step failure; retried according to the step's retry policy."""


class TerminalStepFailure(StepException):
    """A non-retryable step failure; the retry schedule is bypassed."""

    retryable = False


class PartialRemediationException(StepException):
    """A fix branch was created but the pull request could not be opened."""

    retryable = False
