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
"""Scan saga — scan a repository, analyse each finding, report, alert on criticals."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from remediflow.kernel.exceptions import TerminalStepFailure
from remediflow.remediation.models import (
    ProcessedVulnerability,
    ScanTriggerEvent,
    SecurityReport,
    Severity,
    Vulnerability,
)
from remediflow.remediation.ports import AlertSinkPort, HandleProvider, ScannerPort
from remediflow.resilience.retry import RetryPolicy
from remediflow.transactional.saga import SagaBuilder, SagaContext, SagaDefinition

logger = logging.getLogger(__name__)

GENERATE_SCAN_ID = "generate-scan-id"
EXECUTE_SCAN = "execute-scan"
PROCESS_VULNERABILITIES = "process-vulnerabilities"
GENERATE_REPORT = "generate-report"
SEND_CRITICAL_ALERT = "send-critical-alert"


def generate_report(vulnerabilities: Iterable[Vulnerability]) -> SecurityReport:
    """Aggregate *vulnerabilities* into a :class:`SecurityReport`.

    Pure and order-independent: any permutation of the input yields the
    same report.
    """
    counts = {severity: 0 for severity in Severity}
    for vulnerability in vulnerabilities:
        counts[vulnerability.severity] += 1
    return SecurityReport(
        total_issues=sum(counts.values()),
        critical_issues=counts[Severity.CRITICAL],
        severity_counts=counts,
    )


def scan_id_for(ctx: SagaContext) -> str:
    """``scan_<created_at_ms>_<first six chars of run_id>``; stable across retries."""
    return f"scan_{ctx.run.run_timestamp_ms}_{ctx.run_id[:6]}"


def key_vulnerabilities(vulnerabilities: Sequence[Mapping[str, Any]]) -> dict[str, Mapping[str, Any]]:
    """Key findings by id for fan-out; repeated ids get a ``-2``, ``-3`` ... suffix."""
    keyed: dict[str, Mapping[str, Any]] = {}
    for vulnerability in vulnerabilities:
        base = str(vulnerability["id"])
        key, n = base, 2
        while key in keyed:
            key = f"{base}-{n}"
            n += 1
        keyed[key] = vulnerability
    return keyed


def scan_event(trigger: Any) -> ScanTriggerEvent:
    if isinstance(trigger, ScanTriggerEvent):
        return trigger
    return ScanTriggerEvent.model_validate(trigger)


class ScanSaga:
    """Builds the scan saga definition around its scanner and alert ports.

    Args:
        scanner: Provider of a :class:`ScannerPort` client per attempt.
        alerts: Provider of an :class:`AlertSinkPort` client per attempt.
        alert_policy: Retry policy of the best-effort critical alert.
        anonymous_key: Admission key for triggers without a ``user_id``.
    """

    def __init__(
        self,
        scanner: HandleProvider[ScannerPort],
        alerts: HandleProvider[AlertSinkPort],
        *,
        alert_policy: RetryPolicy | None = None,
        anonymous_key: str = "anonymous",
    ) -> None:
        self._scanner = scanner
        self._alerts = alerts
        self._alert_policy = alert_policy or RetryPolicy(max_attempts=5)
        self._anonymous_key = anonymous_key

    def build(self) -> SagaDefinition:
        return (
            SagaBuilder("security-scan")
            .step(GENERATE_SCAN_ID).handler(self.generate_scan_id).no_retry().add()
            .step(EXECUTE_SCAN).handler(self.execute_scan).add()
            .step(PROCESS_VULNERABILITIES)
                .handler(self.process_vulnerability)
                .fan_out(lambda ctx: key_vulnerabilities(ctx.result(EXECUTE_SCAN)))
                .add()
            .step(GENERATE_REPORT).handler(self.generate_report).no_retry().add()
            .step(SEND_CRITICAL_ALERT)
                .handler(self.send_critical_alert)
                .when(lambda ctx: ctx.result(GENERATE_REPORT)["critical_issues"] > 0)
                .retry(self._alert_policy)
                .best_effort()
                .add()
            .admission_key(self.admission_key)
            .output(self.output)
            .build()
        )

    def admission_key(self, trigger: Any) -> str:
        return scan_event(trigger).user_id or self._anonymous_key

    # ── Steps ─────────────────────────────────────────────────

    async def generate_scan_id(self, ctx: SagaContext) -> str:
        return scan_id_for(ctx)

    async def execute_scan(self, ctx: SagaContext) -> list[dict[str, Any]]:
        event = scan_event(ctx.trigger)
        async with self._scanner() as scanner:
            findings = await scanner.run_scan(str(event.repo_url), event.branch, event.scan_type)

        try:
            vulnerabilities = [Vulnerability.model_validate(finding) for finding in findings]
        except ValidationError as exc:
            raise TerminalStepFailure(
                f"Scanner returned malformed findings: {exc.error_count()} error(s)",
                code="MALFORMED_SCAN_RESULT",
                context={"errors": exc.errors(include_url=False)},
            ) from exc

        logger.info(
            "Scan of %s@%s found %d vulnerabilities", event.repo_url, event.branch, len(vulnerabilities)
        )
        return [v.model_dump(mode="json") for v in vulnerabilities]

    async def process_vulnerability(self, ctx: SagaContext, vulnerability: Mapping[str, Any]) -> dict[str, Any]:
        processed = ProcessedVulnerability.model_validate(
            {**vulnerability, "processed_at": ctx.now(), "status": "analyzed"}
        )
        return processed.model_dump(mode="json")

    async def generate_report(self, ctx: SagaContext) -> dict[str, Any]:
        processed = ctx.result(PROCESS_VULNERABILITIES).values()
        report = generate_report(ProcessedVulnerability.model_validate(v) for v in processed)
        return report.model_dump(mode="json")

    async def send_critical_alert(self, ctx: SagaContext) -> dict[str, Any]:
        report = SecurityReport.model_validate(ctx.result(GENERATE_REPORT))
        scan_id = ctx.result(GENERATE_SCAN_ID)
        repo_url = str(scan_event(ctx.trigger).repo_url)
        async with self._alerts() as sink:
            await sink.send_alert(scan_id, repo_url, report)
        return {"scan_id": scan_id, "critical_issues": report.critical_issues}

    # ── Output ────────────────────────────────────────────────

    @staticmethod
    def output(ctx: SagaContext) -> dict[str, Any]:
        return {
            "scan_id": ctx.result(GENERATE_SCAN_ID),
            "vulnerabilities_found": len(ctx.result(EXECUTE_SCAN)),
            "report": ctx.result(GENERATE_REPORT),
        }
