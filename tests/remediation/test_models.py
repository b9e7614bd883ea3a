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
"""Tests for remediation domain models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from remediflow.remediation.models import (
    AutoFixEvent,
    ScanTriggerEvent,
    ScanType,
    SecurityReport,
    Severity,
    Vulnerability,
)

AUTO_FIX_PAYLOAD = {
    "vulnerabilitySignature": [0.1, 0.2, 0.3],
    "vulnerabilityDescription": "Use of eval on user input",
    "vulnerableCodeSnippet": "eval(user_input)",
    "cveId": "CVE-2024-1234",
    "vulnerabilityName": "Code Injection",
    "repoOwner": "acme",
    "repoName": "billing",
    "baseSha": "a1b2c3d",
}


class TestSeverity:
    def test_total_order(self) -> None:
        assert Severity.LOW < Severity.MEDIUM < Severity.HIGH < Severity.CRITICAL
        assert max(Severity) == Severity.CRITICAL
        assert sorted([Severity.CRITICAL, Severity.LOW, Severity.HIGH]) == [
            Severity.LOW,
            Severity.HIGH,
            Severity.CRITICAL,
        ]

    def test_order_is_not_alphabetical(self) -> None:
        assert "critical" < "high"
        assert Severity.CRITICAL > Severity.HIGH
        assert Severity.MEDIUM >= Severity.LOW


class TestScanTriggerEvent:
    def test_accepts_camel_case_and_defaults(self) -> None:
        event = ScanTriggerEvent.model_validate({"repoUrl": "https://github.com/acme/billing"})
        assert event.branch == "main"
        assert event.scan_type == ScanType.FULL
        assert event.user_id is None

    def test_accepts_snake_case(self) -> None:
        event = ScanTriggerEvent(
            repo_url="https://github.com/acme/billing",
            scan_type="dependency-only",
            user_id="u-1",
        )
        assert event.scan_type == ScanType.DEPENDENCY_ONLY
        assert event.user_id == "u-1"

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"repoUrl": "not a url"},
            {"repoUrl": "https://github.com/acme/billing", "scanType": "deep"},
            {"repoUrl": "https://github.com/acme/billing", "branch": ""},
        ],
    )
    def test_rejects_malformed_payloads(self, payload) -> None:
        with pytest.raises(ValidationError):
            ScanTriggerEvent.model_validate(payload)

    def test_is_frozen(self) -> None:
        event = ScanTriggerEvent.model_validate({"repoUrl": "https://github.com/acme/billing"})
        with pytest.raises(ValidationError):
            event.branch = "dev"


class TestAutoFixEvent:
    def test_parses_wire_payload(self) -> None:
        event = AutoFixEvent.model_validate(AUTO_FIX_PAYLOAD)
        assert event.cve_id == "CVE-2024-1234"
        assert event.base_branch == "main"
        assert event.vulnerability_signature == [0.1, 0.2, 0.3]

    @pytest.mark.parametrize(
        "override",
        [
            {"vulnerabilitySignature": []},
            {"cveId": "CVE 1/2"},
            {"repoOwner": ""},
        ],
    )
    def test_rejects_bad_fields(self, override) -> None:
        with pytest.raises(ValidationError):
            AutoFixEvent.model_validate({**AUTO_FIX_PAYLOAD, **override})


class TestVulnerability:
    def test_keeps_scanner_specific_fields(self) -> None:
        vulnerability = Vulnerability.model_validate(
            {"id": "CVE-1", "severity": "high", "package": "requests", "cvss": 8.1}
        )
        dumped = vulnerability.model_dump(mode="json")
        assert dumped["package"] == "requests"
        assert dumped["cvss"] == 8.1
        assert dumped["severity"] == "high"

    def test_unknown_severity_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Vulnerability.model_validate({"id": "CVE-1", "severity": "urgent"})


class TestSecurityReport:
    def test_empty_report_lists_every_severity(self) -> None:
        report = SecurityReport()
        assert report.total_issues == 0
        assert report.severity_counts == {s: 0 for s in Severity}
