from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import ValidationError

from step_kernel.config.models import AppConfig
from step_kernel.kernel.errors import StepKernelError


class ConfigError(StepKernelError, ValueError):
    # Raised for invalid configuration (fail fast).
    pass


def load_yaml_config(path: Path) -> dict[str, object]:
    # YAML loader; returns a raw mapping for validation.
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigError(f"Cannot read config {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a mapping")
    return raw


def validate_config(raw: dict[str, object]) -> AppConfig:
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def load_config(path: Path | None) -> AppConfig:
    # Missing path means built-in defaults.
    if path is None:
        return AppConfig()
    return validate_config(load_yaml_config(path))
