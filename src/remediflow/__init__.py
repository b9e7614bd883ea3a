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
"""remediflow — durable, memoized saga orchestration for vulnerability remediation.

Two sagas run on a shared engine: a *scan* saga (scan a repository, analyse
each finding, report, alert on critical issues) and an *auto-fix* saga
(find similar fixes, generate a patch, open a pull request). Every step
outcome is recorded in an append-only step ledger so a run can be re-entered
after any failure without repeating side effects.
"""

from __future__ import annotations

__version__ = "0.1.0"
