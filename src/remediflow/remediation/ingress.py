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
"""Trigger ingress — validate inbound events and start saga runs."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from remediflow.remediation.models import AutoFixEvent, ScanTriggerEvent
from remediflow.transactional.saga import SagaRun, SagaRunner
from remediflow.transactional.shared.types import SagaType
from remediflow.validation import validate_model

logger = logging.getLogger(__name__)


class TriggerIngress:
    """Entry point for ``security/scan`` and ``github/auto-fix`` events.

    Payloads are validated before anything else happens: a malformed payload
    raises :class:`~remediflow.kernel.exceptions.ValidationException` and no
    saga run is created.
    """

    def __init__(self, runner: SagaRunner) -> None:
        self._runner = runner

    async def submit_scan(
        self,
        payload: Mapping[str, Any] | ScanTriggerEvent,
        *,
        wait: bool = False,
        run_id: str | None = None,
    ) -> SagaRun:
        event = validate_model(ScanTriggerEvent, payload)
        logger.debug("Accepted scan trigger for %s@%s", event.repo_url, event.branch)
        return await self._submit(SagaType.SCAN, event, wait=wait, run_id=run_id)

    async def submit_auto_fix(
        self,
        payload: Mapping[str, Any] | AutoFixEvent,
        *,
        wait: bool = False,
        run_id: str | None = None,
    ) -> SagaRun:
        event = validate_model(AutoFixEvent, payload)
        logger.debug("Accepted auto-fix trigger for %s in %s/%s", event.cve_id, event.repo_owner, event.repo_name)
        return await self._submit(SagaType.AUTO_FIX, event, wait=wait, run_id=run_id)

    async def _submit(self, saga_type: SagaType, event: Any, *, wait: bool, run_id: str | None) -> SagaRun:
        if wait:
            return await self._runner.run(saga_type, event, run_id=run_id)
        return await self._runner.start(saga_type, event, run_id=run_id)
