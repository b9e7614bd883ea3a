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
"""Typed configuration properties for the saga engine and remediation workflows.

YAML structure::

    remediflow:
      logging:
        level: INFO
        format: console
      saga:
        run_timeout_seconds: 1800
        retained_runs: 1000
        retry:
          max_attempts: 3
          initial_delay_ms: 1000
          factor: 2.0
          max_delay_ms: 60000
      alerts:
        max_attempts: 5
        initial_delay_ms: 500
        factor: 2.0
        max_delay_ms: 30000
      rate_limit:
        limit: 10
        period_seconds: 60
        system_key: system
        anonymous_key: anonymous
      scheduler:
        enabled: true
        cron: "0 0 * * *"
        scan_type: full
      autofix:
        top_k: 5
"""

from __future__ import annotations

from dataclasses import dataclass

from remediflow.core.config import config_properties


@config_properties(prefix="remediflow.logging")
@dataclass
class LoggingProperties:
    """Logging configuration (remediflow.logging.*)."""

    level: str = "INFO"
    format: str = "console"


@config_properties(prefix="remediflow.saga")
@dataclass
class SagaProperties:
    """Saga runner configuration (remediflow.saga.*)."""

    run_timeout_seconds: int = 1800
    retained_runs: int = 1000


@config_properties(prefix="remediflow.saga.retry")
@dataclass
class RetryProperties:
    """Default step retry policy (remediflow.saga.retry.*)."""

    max_attempts: int = 3
    initial_delay_ms: int = 1000
    factor: float = 2.0
    max_delay_ms: int = 60_000


@config_properties(prefix="remediflow.alerts")
@dataclass
class AlertProperties:
    """Retry policy for the best-effort alert step (remediflow.alerts.*)."""

    max_attempts: int = 5
    initial_delay_ms: int = 500
    factor: float = 2.0
    max_delay_ms: int = 30_000


@config_properties(prefix="remediflow.rate_limit")
@dataclass
class RateLimitProperties:
    """Trigger admission limits (remediflow.rate_limit.*)."""

    limit: int = 10
    period_seconds: int = 60
    system_key: str = "system"
    anonymous_key: str = "anonymous"


@config_properties(prefix="remediflow.scheduler")
@dataclass
class SchedulerProperties:
    """Periodic repository scan trigger (remediflow.scheduler.*)."""

    enabled: bool = True
    cron: str = "0 0 * * *"
    scan_type: str = "full"


@config_properties(prefix="remediflow.autofix")
@dataclass
class AutoFixProperties:
    """Auto-fix saga settings (remediflow.autofix.*)."""

    top_k: int = 5
