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
"""Scan scheduler — periodically start a scan saga for every catalogued repository."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

from remediflow.remediation.models import Repository, ScanTriggerEvent, ScanType
from remediflow.remediation.ports import RepositoryCatalogPort
from remediflow.scheduling.cron import CronExpression
from remediflow.transactional.saga import SagaRun, SagaRunner
from remediflow.transactional.shared.types import ErrorKind, RunStatus, SagaType

logger = logging.getLogger(__name__)


class ScanScheduler:
    """Cron-driven trigger source for the scan saga.

    Each :meth:`tick` enumerates the repository catalog and starts one scan
    run per repository under the system identity. A repository whose run is
    rejected by the rate limiter is deferred until the rejection's
    ``retry_after`` and submitted again, ahead of the catalog, on a later
    tick. Repositories are never dropped.

    Usage::

        scheduler = ScanScheduler(runner, catalog)
        await scheduler.start()
        # ... application runs ...
        await scheduler.stop()
    """

    def __init__(
        self,
        runner: SagaRunner,
        catalog: RepositoryCatalogPort,
        *,
        cron: CronExpression | str = "0 0 * * *",
        scan_type: ScanType = ScanType.FULL,
        system_user: str = "system",
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._runner = runner
        self._catalog = catalog
        self._cron = cron if isinstance(cron, CronExpression) else CronExpression(cron)
        self._scan_type = scan_type
        self._system_user = system_user
        self._clock = clock or (lambda: datetime.now(UTC))
        self._sleep = sleep
        self._deferred: dict[str, tuple[Repository, datetime]] = {}
        self._running = False
        self._loop_task: asyncio.Task[None] | None = None

    @property
    def cron(self) -> CronExpression:
        return self._cron

    @property
    def running(self) -> bool:
        return self._running

    def deferred(self) -> dict[str, datetime]:
        """Deferred repository URLs and the instant each becomes eligible."""
        return {url: not_before for url, (_repo, not_before) in self._deferred.items()}

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    async def tick(self, now: datetime | None = None) -> list[SagaRun]:
        """Run one scheduling pass: eligible deferred repositories, then the catalog."""
        now = now or self._clock()
        started = await self.drain_deferred(now)

        repositories = await self._catalog.list_repositories()
        logger.info("Scheduled scan tick: %d repositories in catalog", len(repositories))
        submitted = {str(run.trigger_event.repo_url) for run in started}
        for repository in repositories:
            url = str(repository.url)
            if url in submitted or url in self._deferred:
                continue
            started.append(await self._submit(repository, now))
            submitted.add(url)
        return started

    async def drain_deferred(self, now: datetime | None = None) -> list[SagaRun]:
        """Resubmit deferred repositories whose ``retry_after`` has elapsed."""
        now = now or self._clock()
        eligible = [repo for repo, not_before in self._deferred.values() if not_before <= now]
        return [await self._submit(repository, now) for repository in eligible]

    async def _submit(self, repository: Repository, now: datetime) -> SagaRun:
        url = str(repository.url)
        event = ScanTriggerEvent(
            repo_url=repository.url,
            branch=repository.branch,
            scan_type=self._scan_type,
            user_id=self._system_user,
        )
        run = await self._runner.start(SagaType.SCAN, event)

        failure = run.failure
        if run.status == RunStatus.FAILED and failure is not None and failure.kind == ErrorKind.RATE_LIMITED:
            not_before = now + (failure.retry_after or timedelta(0))
            self._deferred[url] = (repository, not_before)
            logger.info("Scan of %s rate limited; deferred until %s", url, not_before.isoformat())
        else:
            self._deferred.pop(url, None)
        return run

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the cron loop as a background task."""
        if self._running:
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._run_loop(), name="scan-scheduler")
        self._loop_task.add_done_callback(self._loop_done_callback)

    async def stop(self) -> None:
        self._running = False
        if self._loop_task is not None:
            self._loop_task.cancel()
            await asyncio.gather(self._loop_task, return_exceptions=True)
            self._loop_task = None

    @staticmethod
    def _loop_done_callback(task: asyncio.Task[None]) -> None:
        if not task.cancelled():
            exc = task.exception()
            if exc is not None:
                logger.error("Scan scheduler loop failed: %s", exc, exc_info=exc)

    async def _run_loop(self) -> None:
        """Sleep until the next cron fire time or deferred deadline, then act."""
        last_fire = self._clock()
        while self._running:
            now = self._clock()
            wake_at = self._cron.next_fire_time(last_fire)
            if self._deferred:
                wake_at = min(wake_at, min(not_before for _repo, not_before in self._deferred.values()))
            await self._sleep(max((wake_at - now).total_seconds(), 0.0))
            if not self._running:
                break

            now = self._clock()
            try:
                if self._cron.is_due(last_fire, now):
                    last_fire = now
                    await self.tick(now)
                elif self._deferred:
                    await self.drain_deferred(now)
            except Exception:
                logger.exception("Scheduled scan tick failed; retrying at the next fire time")
