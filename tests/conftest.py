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
"""Shared fixtures: a manual clock, a recording sleep and in-memory port fakes."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from remediflow.kernel.exceptions import BranchAlreadyExistsException, StepFailureException
from remediflow.remediation.models import Repository, ScanType, SecurityReport


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class RecordingSleep:
    """Stand-in for ``asyncio.sleep`` that records delays and only yields."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


# ── Port fakes ────────────────────────────────────────────────


class FakeScanner:
    def __init__(self, findings: list[dict[str, Any]] | None = None, failures: int = 0) -> None:
        self.findings = findings or []
        self.failures = failures
        self.calls: list[tuple[str, str, ScanType]] = []

    async def run_scan(self, repo_url: str, branch: str, scan_type: ScanType) -> list[dict[str, Any]]:
        self.calls.append((repo_url, branch, scan_type))
        if self.failures > 0:
            self.failures -= 1
            raise StepFailureException("scanner unavailable")
        return list(self.findings)


class FakeAlertSink:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.attempts = 0
        self.alerts: list[tuple[str, str, SecurityReport]] = []

    async def send_alert(self, scan_id: str, repo_url: str, report: SecurityReport) -> None:
        self.attempts += 1
        if self.fail:
            raise StepFailureException("alert channel down")
        self.alerts.append((scan_id, repo_url, report))


class FakeSimilarityIndex:
    def __init__(self, matches: list[dict[str, Any]] | None = None) -> None:
        self.matches = matches if matches is not None else [
            {"id": "fix-low", "score": 0.41},
            {"id": "fix-high", "score": 0.93, "metadata": {"cve": "CVE-2023-0001"}},
        ]
        self.queries: list[tuple[list[float], int]] = []

    async def query(self, vector: Sequence[float], top_k: int) -> list[dict[str, Any]]:
        self.queries.append((list(vector), top_k))
        return self.matches


class FakeCodeGenerator:
    def __init__(self, patch: str = "-    eval(user_input)\n+    ast.literal_eval(user_input)") -> None:
        self.patch = patch
        self.prompts: list[tuple[str, str]] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.prompts.append((system_prompt, user_prompt))
        return self.patch


class FakeSourceControl:
    def __init__(self, pr_failures: int = 0, lost_ref_responses: int = 0) -> None:
        self.pr_failures = pr_failures
        self.lost_ref_responses = lost_ref_responses
        self.refs: dict[tuple[str, str, str], str] = {}
        self.create_ref_calls: list[str] = []
        self.pull_requests: list[dict[str, str]] = []

    async def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> None:
        self.create_ref_calls.append(ref)
        key = (owner, repo, ref)
        if key in self.refs:
            raise BranchAlreadyExistsException(f"Reference already exists: {ref}")
        self.refs[key] = sha
        if self.lost_ref_responses > 0:
            self.lost_ref_responses -= 1
            raise StepFailureException("connection reset after the ref was created")

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str,
    ) -> str:
        if self.pr_failures > 0:
            self.pr_failures -= 1
            raise StepFailureException("pull request API unavailable")
        self.pull_requests.append({"title": title, "head": head, "base": base, "body": body})
        return f"https://github.com/{owner}/{repo}/pull/{len(self.pull_requests)}"


class FakeCatalog:
    def __init__(self, repositories: list[Repository] | None = None) -> None:
        self.repositories = repositories or []

    async def list_repositories(self) -> list[Repository]:
        return list(self.repositories)


# ── Fixtures ──────────────────────────────────────────────────


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def scanner() -> FakeScanner:
    return FakeScanner()


@pytest.fixture
def alert_sink() -> FakeAlertSink:
    return FakeAlertSink()


@pytest.fixture
def similarity_index() -> FakeSimilarityIndex:
    return FakeSimilarityIndex()


@pytest.fixture
def code_generator() -> FakeCodeGenerator:
    return FakeCodeGenerator()


@pytest.fixture
def source_control() -> FakeSourceControl:
    return FakeSourceControl()


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()
