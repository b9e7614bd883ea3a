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
"""Tests for the remediflow exception hierarchy."""

from datetime import timedelta

import pytest

from remediflow.kernel.exceptions import (
    BranchAlreadyExistsException,
    BranchConflictException,
    BusinessException,
    ConflictException,
    InfrastructureException,
    PartialRemediationException,
    RateLimitException,
    RemediflowException,
    SagaCancelledException,
    SagaTimeoutException,
    SagaValidationError,
    StepException,
    StepFailureException,
    TerminalStepFailure,
    ValidationException,
)
from remediflow.transactional.ledger.step_ledger import is_terminal_error


class TestRemediflowException:
    def test_basic_creation(self):
        exc = RemediflowException("something went wrong")
        assert str(exc) == "something went wrong"
        assert exc.code is None
        assert exc.context == {}

    def test_with_code_and_context(self):
        exc = RemediflowException("not found", code="NOT_FOUND", context={"repo": "acme/billing"})
        assert exc.code == "NOT_FOUND"
        assert exc.context["repo"] == "acme/billing"

    def test_context_is_not_shared(self):
        a = RemediflowException("a")
        b = RemediflowException("b")
        a.context["k"] = 1
        assert b.context == {}


class TestHierarchy:
    @pytest.mark.parametrize(
        ("exc_cls", "parent"),
        [
            (ValidationException, BusinessException),
            (ConflictException, BusinessException),
            (BranchAlreadyExistsException, ConflictException),
            (BranchConflictException, ConflictException),
            (SagaValidationError, BusinessException),
            (RateLimitException, InfrastructureException),
            (SagaTimeoutException, InfrastructureException),
            (SagaCancelledException, InfrastructureException),
            (StepFailureException, StepException),
            (TerminalStepFailure, StepException),
            (PartialRemediationException, StepException),
            (StepException, RemediflowException),
        ],
    )
    def test_subclassing(self, exc_cls, parent):
        assert issubclass(exc_cls, parent)

    def test_rate_limit_carries_retry_after(self):
        exc = RateLimitException("slow down", retry_after=timedelta(seconds=42))
        assert exc.retry_after == timedelta(seconds=42)
        assert exc.code == "RATE_LIMITED"


class TestRetryability:
    @pytest.mark.parametrize(
        "exc",
        [
            TerminalStepFailure("empty patch"),
            PartialRemediationException("no PR url"),
            ValidationException("bad payload"),
            SagaValidationError("cycle"),
            BranchConflictException("fix/CVE-1-1 belongs to another run"),
        ],
    )
    def test_terminal(self, exc):
        assert exc.retryable is False
        assert is_terminal_error(exc)

    @pytest.mark.parametrize(
        "exc",
        [
            StepFailureException("503"),
            BranchAlreadyExistsException("exists"),
            RuntimeError("plain python error"),
            TimeoutError(),
        ],
    )
    def test_retryable(self, exc):
        assert not is_terminal_error(exc)
