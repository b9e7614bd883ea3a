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
"""Remediation domain models.

Trigger events accept the camelCase keys used on the wire (``repoUrl``,
``scanType``, ``userId``) as well as the snake_case field names. Models that
flow between saga steps are dumped with ``model_dump(mode="json")`` so the
ledger only ever stores JSON-compatible values.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import AnyUrl, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ScanType(StrEnum):
    """Depth of a repository scan."""

    FULL = "full"
    INCREMENTAL = "incremental"
    DEPENDENCY_ONLY = "dependency-only"


class Severity(StrEnum):
    """Vulnerability severity, totally ordered ``low < medium < high < critical``."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------


class ScanTriggerEvent(_WireModel):
    """Request to scan one branch of a repository."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    repo_url: AnyUrl
    branch: str = Field(default="main", min_length=1)
    scan_type: ScanType = ScanType.FULL
    user_id: str | None = None
    metadata: dict[str, Any] | None = None


class AutoFixEvent(_WireModel):
    """Request to propose a fix for one vulnerability as a pull request."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    vulnerability_signature: list[float] = Field(min_length=1)
    vulnerability_description: str = Field(min_length=1)
    vulnerable_code_snippet: str
    cve_id: str = Field(min_length=1, pattern=r"^[A-Za-z0-9._-]+$")
    vulnerability_name: str = Field(min_length=1)
    repo_owner: str = Field(min_length=1)
    repo_name: str = Field(min_length=1)
    base_sha: str = Field(min_length=1)
    base_branch: str = Field(default="main", min_length=1)
    user_id: str | None = None


# ---------------------------------------------------------------------------
# Scan results
# ---------------------------------------------------------------------------


class Vulnerability(_WireModel):
    """A finding reported by the scanner. Scanner-specific fields are kept."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: str = Field(min_length=1)
    severity: Severity
    description: str = ""


class ProcessedVulnerability(Vulnerability):
    processed_at: datetime
    status: Literal["analyzed"] = "analyzed"


class SecurityReport(_WireModel):
    """Aggregate of processed vulnerabilities.

    ``severity_counts`` always holds every severity, zero included.
    """

    total_issues: int = 0
    critical_issues: int = 0
    severity_counts: dict[Severity, int] = Field(
        default_factory=lambda: {severity: 0 for severity in Severity}
    )


class Repository(_WireModel):
    """A repository known to the catalog and scanned on schedule."""

    url: AnyUrl
    branch: str = "main"


# ---------------------------------------------------------------------------
# Auto-fix
# ---------------------------------------------------------------------------


class SimilarFix(_WireModel):
    """A previously applied fix returned by the similarity index."""

    id: str
    score: float
    metadata: dict[str, Any] = Field(default_factory=dict)


class FixProposal(_WireModel):
    cve_id: str
    branch_name: str
    patch_text: str
    similar_fixes: list[SimilarFix] = Field(default_factory=list)
    pull_request_url: str | None = None
