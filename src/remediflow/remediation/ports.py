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
"""Outbound ports of the remediation sagas.

Every external collaborator (scanner, similarity index, code generator,
source-control host, alert channel, repository catalog) is reached through
one of these ``@runtime_checkable`` protocols. Saga steps never hold a
client across invocations: they acquire one from a :data:`HandleProvider`
for the duration of a single attempt.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from remediflow.remediation.models import Repository, ScanType, SecurityReport, SimilarFix

T = TypeVar("T")

HandleProvider = Callable[[], AbstractAsyncContextManager[T]]
"""Zero-argument callable returning an async context manager that yields a client."""


def provide(client: T) -> HandleProvider[T]:
    """Wrap an already-built *client* as a :data:`HandleProvider`.

    Each acquisition yields the same instance and releases nothing; use it
    for clients that are safe to share, such as stateless HTTP wrappers or
    test doubles.
    """

    @asynccontextmanager
    async def _borrow() -> AsyncIterator[T]:
        yield client

    return _borrow


@runtime_checkable
class ScannerPort(Protocol):
    """Runs a security scan against a repository branch."""

    async def run_scan(
        self,
        repo_url: str,
        branch: str,
        scan_type: ScanType,
    ) -> Sequence[Mapping[str, Any]]:
        """Return the vulnerabilities found, one mapping per finding."""
        ...


@runtime_checkable
class SimilarityIndexPort(Protocol):
    """Nearest-neighbour lookup of previously applied fixes."""

    async def query(self, vector: Sequence[float], top_k: int) -> Sequence[SimilarFix | Mapping[str, Any]]:
        """Return at most *top_k* matches for *vector*."""
        ...


@runtime_checkable
class CodeGenerationPort(Protocol):
    """Language-model completion used to draft a patch."""

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        """Return the generated text for the prompt pair."""
        ...


@runtime_checkable
class SourceControlPort(Protocol):
    """Git hosting operations needed to publish a fix."""

    async def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> None:
        """Create *ref* pointing at *sha*.

        Raises:
            BranchAlreadyExistsException: If *ref* already exists.
        """
        ...

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        head: str,
        base: str,
        body: str,
    ) -> str:
        """Open a pull request and return its URL."""
        ...


@runtime_checkable
class AlertSinkPort(Protocol):
    """Channel notified when a scan finds critical issues."""

    async def send_alert(self, scan_id: str, repo_url: str, report: SecurityReport) -> None:
        ...


@runtime_checkable
class RepositoryCatalogPort(Protocol):
    """Source of the repositories scanned on schedule."""

    async def list_repositories(self) -> Sequence[Repository]:
        ...
