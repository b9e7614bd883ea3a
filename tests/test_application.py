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
"""Integration tests for RemediationApplication wiring."""

from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from remediflow.application import RemediationApplication
from remediflow.core.config import Config
from remediflow.remediation.models import Repository
from remediflow.remediation.ports import provide
from remediflow.transactional.ledger.sqlalchemy import SqlAlchemyLedgerStore, create_ledger_schema
from remediflow.transactional.shared.types import ErrorKind, RunStatus, SagaType

REPO = "https://github.com/acme/billing"


@pytest.fixture
def ports(scanner, alert_sink, similarity_index, code_generator, source_control) -> dict:
    return {
        "scanner": provide(scanner),
        "alerts": provide(alert_sink),
        "similarity": provide(similarity_index),
        "codegen": provide(code_generator),
        "source_control": provide(source_control),
    }


class TestCreate:
    @pytest.mark.asyncio
    async def test_defaults_wire_both_sagas(self, ports, clock, sleeps) -> None:
        app = RemediationApplication.create(clock=clock, sleep=sleeps, configure_logging=False, **ports)

        assert app.runner.definition(SagaType.SCAN).name == "security-scan"
        assert app.runner.definition(SagaType.AUTO_FIX).name == "github-auto-fix"
        assert app.scheduler is None

        run = await app.ingress.submit_scan({"repoUrl": REPO}, wait=True)
        assert run.status == RunStatus.SUCCEEDED
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_rate_limit_comes_from_config(self, ports, clock, sleeps) -> None:
        config = Config({"remediflow": {"rate_limit": {"limit": 1, "period_seconds": 60}}})
        app = RemediationApplication.create(config, clock=clock, sleep=sleeps, configure_logging=False, **ports)

        first = await app.ingress.submit_scan({"repoUrl": REPO, "userId": "u-1"}, wait=True)
        second = await app.ingress.submit_scan({"repoUrl": REPO, "userId": "u-1"}, wait=True)

        assert first.status == RunStatus.SUCCEEDED
        assert second.failure.kind == ErrorKind.RATE_LIMITED
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_retry_policy_comes_from_config(self, ports, scanner, clock, sleeps) -> None:
        config = Config({"remediflow": {"saga": {"retry": {"max_attempts": 2, "initial_delay_ms": 10}}}})
        app = RemediationApplication.create(config, clock=clock, sleep=sleeps, configure_logging=False, **ports)
        scanner.failures = 5

        run = await app.ingress.submit_scan({"repoUrl": REPO}, wait=True)

        assert run.failure.attempts == 2
        assert sleeps.delays == [0.01]
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_config_file_path_is_laid_over_defaults(self, ports, clock, sleeps, tmp_path) -> None:
        path = tmp_path / "remediflow.yaml"
        path.write_text("remediflow:\n  saga:\n    retained_runs: 1\n")
        app = RemediationApplication.create(path, clock=clock, sleep=sleeps, configure_logging=False, **ports)

        first = await app.ingress.submit_scan({"repoUrl": REPO}, wait=True)
        second = await app.ingress.submit_scan({"repoUrl": REPO}, wait=True)

        assert app.config.loaded_sources[-1] == str(path)
        assert app.config.get("remediflow.rate_limit.limit") == 10
        assert [r.run_id for r in app.runner.runs()] == [second.run_id]
        assert first.status == RunStatus.SUCCEEDED
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_scheduler_only_with_catalog_and_enabled(self, ports, catalog, clock, sleeps) -> None:
        catalog.repositories = [Repository(url=REPO)]
        disabled = Config({"remediflow": {"scheduler": {"enabled": False}}})

        app = RemediationApplication.create(
            disabled, catalog=catalog, clock=clock, sleep=sleeps, configure_logging=False, **ports
        )
        await app.startup()

        assert app.scheduler is not None
        assert app.scheduler.running is False
        assert app.scheduler.cron.expression == "0 0 * * *"
        await app.shutdown()

    @pytest.mark.asyncio
    async def test_durable_ledger_store(self, ports, clock, sleeps) -> None:
        engine = create_async_engine("sqlite+aiosqlite:///:memory:")
        await create_ledger_schema(engine)
        store = SqlAlchemyLedgerStore(async_sessionmaker(engine, expire_on_commit=False))
        app = RemediationApplication.create(
            ledger_store=store, clock=clock, sleep=sleeps, configure_logging=False, **ports
        )

        run = await app.ingress.submit_scan({"repoUrl": REPO}, wait=True)

        assert run.status == RunStatus.SUCCEEDED
        assert len(await store.records(run.run_id)) > 0
        await app.shutdown()
        await engine.dispose()


class TestHandleProviders:
    @pytest.mark.asyncio
    async def test_provider_is_acquired_per_attempt(self, ports, scanner, clock, sleeps) -> None:
        acquisitions: list[str] = []

        @asynccontextmanager
        async def pooled_scanner():
            acquisitions.append("acquire")
            try:
                yield scanner
            finally:
                acquisitions.append("release")

        scanner.failures = 1
        app = RemediationApplication.create(
            clock=clock, sleep=sleeps, configure_logging=False, **{**ports, "scanner": pooled_scanner}
        )

        run = await app.ingress.submit_scan({"repoUrl": REPO}, wait=True)

        assert run.status == RunStatus.SUCCEEDED
        assert acquisitions == ["acquire", "release", "acquire", "release"]
        await app.shutdown()
