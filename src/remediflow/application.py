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
"""Application bootstrap — wires configuration, the saga runner and its trigger sources."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from remediflow.config.properties import (
    AlertProperties,
    AutoFixProperties,
    RateLimitProperties,
    RetryProperties,
    SagaProperties,
    SchedulerProperties,
)
from remediflow.core.config import Config
from remediflow.logging.structlog_adapter import StructlogAdapter
from remediflow.remediation.autofix_saga import AutoFixSaga
from remediflow.remediation.ingress import TriggerIngress
from remediflow.remediation.models import ScanType
from remediflow.remediation.ports import (
    AlertSinkPort,
    CodeGenerationPort,
    HandleProvider,
    RepositoryCatalogPort,
    ScannerPort,
    SimilarityIndexPort,
    SourceControlPort,
)
from remediflow.remediation.scan_saga import ScanSaga
from remediflow.resilience.rate_limiter import SlidingWindowRateLimiter
from remediflow.resilience.retry import RetryPolicy
from remediflow.scheduling.scan_scheduler import ScanScheduler
from remediflow.transactional.ledger.step_ledger import StepLedger
from remediflow.transactional.saga import SagaRunner
from remediflow.transactional.shared.observability.events import LoggerEventsAdapter
from remediflow.transactional.shared.observability.tracing import TracingEventsAdapter
from remediflow.transactional.shared.ports.outbound import LedgerStorePort, SagaEventsPort
from remediflow.transactional.shared.types import SagaType

logger = logging.getLogger(__name__)


class RemediationApplication:
    """The assembled remediation service.

    Build it with :meth:`create`; call :meth:`startup` to start the scan
    scheduler and :meth:`shutdown` to stop it and cancel in-flight runs.
    """

    def __init__(
        self,
        config: Config,
        runner: SagaRunner,
        ingress: TriggerIngress,
        scheduler: ScanScheduler | None,
        scheduler_enabled: bool,
    ) -> None:
        self.config = config
        self.runner = runner
        self.ingress = ingress
        self.scheduler = scheduler
        self._scheduler_enabled = scheduler_enabled

    @classmethod
    def create(
        cls,
        config: Config | str | Path | None = None,
        *,
        scanner: HandleProvider[ScannerPort],
        alerts: HandleProvider[AlertSinkPort],
        similarity: HandleProvider[SimilarityIndexPort],
        codegen: HandleProvider[CodeGenerationPort],
        source_control: HandleProvider[SourceControlPort],
        catalog: RepositoryCatalogPort | None = None,
        ledger_store: LedgerStorePort | None = None,
        events: list[SagaEventsPort] | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        configure_logging: bool = True,
    ) -> RemediationApplication:
        """Assemble the service from *config*.

        *config* is a :class:`Config`, the path of a YAML or TOML file laid
        over the packaged defaults, or ``None`` for the defaults alone.

        The scan scheduler is only built when a repository *catalog* is given.
        """
        if config is None:
            config = Config.defaults()
        elif not isinstance(config, Config):
            config = Config.from_file(config)
        if configure_logging:
            StructlogAdapter().configure(config)

        saga_props = config.bind(SagaProperties)
        rate_props = config.bind(RateLimitProperties)
        scheduler_props = config.bind(SchedulerProperties)
        autofix_props = config.bind(AutoFixProperties)

        runner = SagaRunner(
            ledger=StepLedger(ledger_store, clock=clock),
            rate_limiter=SlidingWindowRateLimiter(
                limit=rate_props.limit,
                period=timedelta(seconds=rate_props.period_seconds),
                clock=clock,
            ),
            retry_policy=RetryPolicy.from_properties(config.bind(RetryProperties)),
            events=[LoggerEventsAdapter(), TracingEventsAdapter(), *(events or [])],
            run_timeout=timedelta(seconds=saga_props.run_timeout_seconds),
            retained_runs=saga_props.retained_runs,
            clock=clock,
            sleep=sleep,
        )
        runner.register(
            SagaType.SCAN,
            ScanSaga(
                scanner,
                alerts,
                alert_policy=RetryPolicy.from_properties(config.bind(AlertProperties)),
                anonymous_key=rate_props.anonymous_key,
            ).build(),
        )
        runner.register(
            SagaType.AUTO_FIX,
            AutoFixSaga(
                similarity,
                codegen,
                source_control,
                top_k=autofix_props.top_k,
                anonymous_key=rate_props.anonymous_key,
            ).build(),
        )

        scheduler = None
        if catalog is not None:
            scheduler = ScanScheduler(
                runner,
                catalog,
                cron=scheduler_props.cron,
                scan_type=ScanType(scheduler_props.scan_type),
                system_user=rate_props.system_key,
                clock=clock,
            )

        logger.info(
            "Remediation service assembled (sources=%s, scheduler=%s)",
            config.loaded_sources,
            "on" if scheduler is not None and scheduler_props.enabled else "off",
        )
        return cls(config, runner, TriggerIngress(runner), scheduler, scheduler_props.enabled)

    async def startup(self) -> None:
        if self.scheduler is not None and self._scheduler_enabled:
            await self.scheduler.start()

    async def shutdown(self) -> None:
        if self.scheduler is not None:
            await self.scheduler.stop()
        await self.runner.shutdown()
