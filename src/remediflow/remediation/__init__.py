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
"""Vulnerability remediation: scan and auto-fix sagas, their ports and ingress."""

from __future__ import annotations

from remediflow.remediation.autofix_saga import AutoFixSaga, branch_name
from remediflow.remediation.ingress import TriggerIngress
from remediflow.remediation.models import (
    AutoFixEvent,
    FixProposal,
    ProcessedVulnerability,
    Repository,
    ScanTriggerEvent,
    ScanType,
    SecurityReport,
    Severity,
    SimilarFix,
    Vulnerability,
)
from remediflow.remediation.ports import (
    AlertSinkPort,
    CodeGenerationPort,
    HandleProvider,
    RepositoryCatalogPort,
    ScannerPort,
    SimilarityIndexPort,
    SourceControlPort,
    provide,
)
from remediflow.remediation.scan_saga import ScanSaga, generate_report

__all__ = [
    "AlertSinkPort",
    "AutoFixEvent",
    "AutoFixSaga",
    "CodeGenerationPort",
    "FixProposal",
    "HandleProvider",
    "ProcessedVulnerability",
    "Repository",
    "RepositoryCatalogPort",
    "ScanSaga",
    "ScanTriggerEvent",
    "ScanType",
    "ScannerPort",
    "SecurityReport",
    "Severity",
    "SimilarFix",
    "SimilarityIndexPort",
    "SourceControlPort",
    "TriggerIngress",
    "Vulnerability",
    "branch_name",
    "generate_report",
    "provide",
]
