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
"""Tests for the durable SQLAlchemy ledger store (aiosqlite in-memory)."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from remediflow.kernel.exceptions import StepFailureException
from remediflow.transactional.ledger import StepLedger
from remediflow.transactional.ledger.sqlalchemy import SqlAlchemyLedgerStore, create_ledger_schema
from remediflow.transactional.shared.ports.outbound import LedgerStorePort
from remediflow.transactional.shared.types import StepStatus


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    await create_ledger_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def store(engine) -> SqlAlchemyLedgerStore:
    return SqlAlchemyLedgerStore(async_sessionmaker(engine, expire_on_commit=False))


class TestSqlAlchemyLedgerStore:
    @pytest.mark.asyncio
    async def test_satisfies_port(self, store: SqlAlchemyLedgerStore) -> None:
        assert isinstance(store, LedgerStorePort)

    @pytest.mark.asyncio
    async def test_json_results_round_trip_through_the_ledger(self, store, clock) -> None:
        ledger = StepLedger(store, clock=clock)
        findings = [{"id": "CVE-1", "severity": "critical", "description": "rce"}]

        async def scan() -> list[dict]:
            return findings

        await ledger.get_or_run("run-1", "execute-scan", scan)
        replay = await ledger.get_or_run("run-1", "execute-scan", scan)

        assert replay.succeeded
        assert replay.result == findings
        assert replay.started_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_success_survives_a_new_ledger_instance(self, store, clock) -> None:
        calls = 0

        async def create_branch() -> dict:
            nonlocal calls
            calls += 1
            return {"branch_name": "fix/CVE-1-1"}

        await StepLedger(store, clock=clock).get_or_run("run-1", "create-branch", create_branch)
        record = await StepLedger(store, clock=clock).get_or_run("run-1", "create-branch", create_branch)

        assert calls == 1
        assert record.result == {"branch_name": "fix/CVE-1-1"}

    @pytest.mark.asyncio
    async def test_history_keeps_append_order_and_failure_details(self, store, clock) -> None:
        ledger = StepLedger(store, clock=clock)

        async def flaky() -> str:
            raise StepFailureException("503 from scanner")

        await ledger.get_or_run("run-1", "execute-scan", flaky, execution=1)
        await ledger.get_or_run("run-1", "execute-scan", flaky, execution=2)

        history = await store.history("run-1", "execute-scan")

        assert [(r.attempt, r.status, r.execution) for r in history] == [
            (1, StepStatus.PENDING, 1),
            (1, StepStatus.FAILED, 1),
            (2, StepStatus.PENDING, 2),
            (2, StepStatus.FAILED, 2),
        ]
        assert history[1].error == "503 from scanner"
        assert history[1].error_type == "StepFailureException"
        assert await ledger.failed_attempts("run-1", "execute-scan", execution=2) == 1

    @pytest.mark.asyncio
    async def test_records_are_scoped_to_the_run(self, store, clock) -> None:
        ledger = StepLedger(store, clock=clock)

        async def ok() -> int:
            return 1

        await ledger.get_or_run("run-1", "a", ok)
        await ledger.get_or_run("run-2", "a", ok)

        assert {r.run_id for r in await store.records("run-1")} == {"run-1"}
        assert len(await store.records("run-2")) == 2
