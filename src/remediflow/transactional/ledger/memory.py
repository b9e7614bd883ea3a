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
"""In-memory implementation of :class:`LedgerStorePort`.

The zero-dependency default when no database is configured.
**All records are lost on process restart.**
"""

from __future__ import annotations

import asyncio
from collections import defaultdict

from remediflow.transactional.ledger.records import StepRecord


class InMemoryLedgerStore:
    """In-memory :class:`LedgerStorePort`. Records lost on restart.

    Records are kept per run in append order::

        {
            "run-1": [StepRecord(step_name="execute-scan", attempt=1, ...), ...],
        }
    """

    def __init__(self) -> None:
        self._runs: dict[str, list[StepRecord]] = defaultdict(list)
        self._lock = asyncio.Lock()

    async def append(self, record: StepRecord) -> None:
        async with self._lock:
            self._runs[record.run_id].append(record)

    async def history(self, run_id: str, step_name: str) -> list[StepRecord]:
        return [r for r in self._runs.get(run_id, ()) if r.step_name == step_name]

    async def records(self, run_id: str) -> list[StepRecord]:
        return list(self._runs.get(run_id, ()))
