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
"""Layered configuration: packaged defaults, one YAML/TOML file, env overrides."""

from __future__ import annotations

import dataclasses
import importlib.resources
import os
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import Any, TypeVar, get_type_hints

import yaml  # type: ignore[import-untyped]
from pydantic import BaseModel, ValidationError

T = TypeVar("T")

_CONFIG_PROPERTIES_ATTR = "__remediflow_config_prefix__"
_ENV_PREFIX = "REMEDIFLOW_"
_DEFAULTS_SOURCE = "remediflow-defaults.yaml (packaged defaults)"


def config_properties(prefix: str) -> Callable[[type[T]], type[T]]:
    """Mark a dataclass or pydantic model as bound to the section at *prefix*.

    Usage:
        @config_properties(prefix="remediflow.rate_limit")
        @dataclass
        class RateLimitProperties:
            limit: int = 10
    """

    def decorator(cls: type[T]) -> type[T]:
        setattr(cls, _CONFIG_PROPERTIES_ATTR, prefix)
        return cls

    return decorator


class Config:
    """Nested configuration read with dotted keys.

    A value set in the environment wins over the file, and the file wins over
    the packaged defaults: ``remediflow.rate_limit.limit`` is overridden by
    ``REMEDIFLOW_RATE_LIMIT_LIMIT``. Fields missing everywhere keep the
    defaults of the bound properties class.
    """

    def __init__(self, data: dict[str, Any] | None = None, sources: list[str] | None = None) -> None:
        self._data: dict[str, Any] = data or {}
        self._sources = sources or []

    @property
    def loaded_sources(self) -> list[str]:
        """Files merged into this configuration, lowest precedence first."""
        return list(self._sources)

    @classmethod
    def defaults(cls) -> Config:
        return cls(_packaged_defaults(), [_DEFAULTS_SOURCE])

    @classmethod
    def from_file(cls, path: str | Path, load_defaults: bool = True) -> Config:
        """Overlay the YAML or TOML file at *path* on the packaged defaults.

        Raises:
            FileNotFoundError: If *path* does not exist.
        """
        path = Path(path)
        data = _packaged_defaults() if load_defaults else {}
        sources = [_DEFAULTS_SOURCE] if load_defaults else []
        return cls(_merge(data, _read(path)), [*sources, str(path)])

    # ── Reads ─────────────────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        """Value at dotted *key*; an environment override comes back as a string."""
        env_val = os.environ.get(_env_key(key))
        if env_val is not None:
            return env_val

        current: Any = self._data
        for part in key.split("."):
            if not isinstance(current, dict) or current.get(part) is None:
                return default
            current = current[part]
        return current

    def get_section(self, prefix: str) -> dict[str, Any]:
        section = self.get(prefix)
        return dict(section) if isinstance(section, dict) else {}

    def bind(self, config_cls: type[T]) -> T:
        """Build a ``@config_properties`` class from its section.

        Raises:
            ValueError: If the class is not decorated, or a pydantic model
                rejects the section.
        """
        prefix = getattr(config_cls, _CONFIG_PROPERTIES_ATTR, None)
        if prefix is None:
            raise ValueError(f"{config_cls.__name__} is not decorated with @config_properties")

        if issubclass(config_cls, BaseModel):
            try:
                return config_cls.model_validate(self.get_section(prefix))  # type: ignore[return-value]
            except ValidationError as exc:
                raise ValueError(f"Invalid configuration under '{prefix}':\n{exc}") from exc

        hints = get_type_hints(config_cls)
        kwargs: dict[str, Any] = {}
        for field in dataclasses.fields(config_cls):  # type: ignore[arg-type]
            value = self.get(f"{prefix}.{field.name}")
            if value is not None:
                kwargs[field.name] = _coerce(value, hints.get(field.name))
        return config_cls(**kwargs)


def _env_key(key: str) -> str:
    # remediflow.rate_limit.limit -> REMEDIFLOW_RATE_LIMIT_LIMIT
    return _ENV_PREFIX + key.removeprefix("remediflow.").upper().replace(".", "_")


def _coerce(value: Any, expected: Any) -> Any:
    if expected is bool and isinstance(value, str):
        return value.lower() in ("true", "1", "yes")
    if expected is int and isinstance(value, str):
        return int(value)
    if expected is float and isinstance(value, (str, int)):
        return float(value)
    return value


def _read(path: Path) -> dict[str, Any]:
    if path.suffix == ".toml":
        with open(path, "rb") as f:
            return tomllib.load(f)
    with open(path) as f:
        return yaml.safe_load(f) or {}


def _packaged_defaults() -> dict[str, Any]:
    resource = importlib.resources.files("remediflow.resources").joinpath("remediflow-defaults.yaml")
    return yaml.safe_load(resource.read_text()) or {}


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged
