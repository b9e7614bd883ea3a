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
"""SQLAlchemy implementation of :class:`LedgerStorePort`.

Step records survive process restarts, so a crashed saga can be re-entered
with the same ``run_id`` and replay every step that already succeeded.
Results are stored in a JSON column and must be JSON-serialisable.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from remediflow.transactional.ledger.records import StepRecord
from remediflow.transactional.shared.types import StepStatus


class LedgerBase(DeclarativeBase):
    """Declarative base for ledger tables."""


class StepRecordEntity(LedgerBase):
    """Row in the append-only ``step_records`` table."""

    __tablename__ = "step_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    run_id: Mapped[str] = mapped_column(String(64), index=True)
    step_name: Mapped[str] = mapped_column(String(255), index=True)
    attempt: Mapped[int] = mapped_column(Integer)
    execution: Mapped[int] = mapped_column(Integer, default=1)
    status: Mapped[str] = mapped_column(String(16))
    result: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    terminal: Mapped[bool] = mapped_column(Boolean, default=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    finished_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


async def create_ledger_schema(engine: AsyncEngine) -> None:
    """Create the ledger tables if they do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(LedgerBase.metadata.create_all)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


class SqlAlchemyLedgerStore:
    """Durable :class:`LedgerStorePort` backed by an async SQLAlchemy session factory.

    Every append runs in its own transaction; rows are only ever inserted.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, record: StepRecord) -> None:
        async with self._session_factory() as session, session.begin():
            session.add(self._to_entity(record))

    async def history(self, run_id: str, step_name: str) -> list[StepRecord]:
        stmt = (
            select(StepRecordEntity)
            .where(StepRecordEntity.run_id == run_id, StepRecordEntity.step_name == step_name)
            .order_by(StepRecordEntity.id)
        )
        return await self._fetch(stmt)

    async def records(self, run_id: str) -> list[StepRecord]:
        stmt = (
            select(StepRecordEntity)
            .where(StepRecordEntity.run_id == run_id)
            .order_by(StepRecordEntity.id)
        )
        return await self._fetch(stmt)

    async def _fetch(self, stmt: Any) -> list[StepRecord]:
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [self._to_record(row) for row in rows]

    @staticmethod
    def _to_entity(record: StepRecord) -> StepRecordEntity:
        return StepRecordEntity(
            run_id=record.run_id,
            step_name=record.step_name,
            attempt=record.attempt,
            execution=record.execution,
            status=record.status.value,
            result=record.result,
            error=record.error,
            error_type=record.error_type,
            terminal=record.terminal,
            started_at=record.started_at,
            finished_at=record.finished_at,
        )

    @staticmethod
    def _to_record(row: StepRecordEntity) -> StepRecord:
        return StepRecord(
            run_id=row.run_id,
            step_name=row.step_name,
            attempt=row.attempt,
            execution=row.execution,
            status=StepStatus(row.status),
            result=row.result,
            error=row.error,
            error_type=row.error_type,
            terminal=row.terminal,
            started_at=_as_utc(row.started_at),  # type: ignore[arg-type]
            finished_at=_as_utc(row.finished_at),
        )
