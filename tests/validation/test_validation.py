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
"""Tests for validate_model."""

import pytest

from remediflow.kernel.exceptions import ValidationException
from remediflow.remediation.models import ScanTriggerEvent
from remediflow.validation import validate_model


class TestValidateModel:
    def test_valid_payload(self):
        event = validate_model(ScanTriggerEvent, {"repoUrl": "https://github.com/acme/billing"})
        assert isinstance(event, ScanTriggerEvent)

    def test_existing_instance_passes_through(self):
        event = ScanTriggerEvent.model_validate({"repoUrl": "https://github.com/acme/billing"})
        assert validate_model(ScanTriggerEvent, event) is event

    def test_invalid_payload_raises_validation_exception(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_model(ScanTriggerEvent, {"branch": "main"})

        exc = exc_info.value
        assert exc.code == "VALIDATION_ERROR"
        assert "repoUrl" in str(exc)
        assert exc.context["errors"][0]["type"] == "missing"
        assert exc.retryable is False
