from __future__ import annotations

import importlib
import importlib.util
import inspect
import sys
from pathlib import Path
from types import ModuleType

from step_kernel.kernel.errors import DiscoveryError
from step_kernel.kernel.step import (
    StepBinding,
    get_step_group_meta,
    get_step_meta,
    is_async_step,
    require_zero_args,
)
from step_kernel.kernel.step_registry import StepRegistry


def discover_steps(modules: list[ModuleType]) -> StepRegistry:
    # Discover @step functions, @step_group containers and script-level registries.
    registry = StepRegistry()
    for module in modules:
        values = list(module.__dict__.values())

        # Top-level free-standing steps.
        for value in values:
            meta = get_step_meta(value)
            if meta is None or inspect.isclass(value):
                continue
            require_zero_args(meta.name, value)
            registry.add(
                StepBinding(
                    name=meta.name,
                    target=value,
                    is_async=is_async_step(value),
                    default=meta.default,
                    description=meta.description,
                )
            )

        # Step groups: one receiver instance per class, methods resolved on it.
        for value in values:
            group_meta = get_step_group_meta(value)
            if group_meta is None or not inspect.isclass(value):
                continue
            receiver = _instantiate_group(value, group_meta.name)
            for attr_name, attr_value in value.__dict__.items():
                meta = get_step_meta(attr_value)
                if meta is None:
                    continue
                bound = getattr(receiver, attr_name)
                require_zero_args(meta.name, bound)
                registry.add(
                    StepBinding(
                        name=meta.name,
                        target=bound,
                        ownership="method",
                        container_cls=value,
                        container_attr=attr_name,
                        is_async=is_async_step(bound),
                        default=meta.default,
                        description=meta.description,
                    )
                )

        # Explicit registries declared by the script.
        for value in values:
            if isinstance(value, StepRegistry):
                registry.merge(value)

    return registry


def discover_script(path: Path) -> StepRegistry:
    registry = discover_steps([load_script(path)])
    if not len(registry):
        raise DiscoveryError(f"No steps declared in {path}")
    return registry


def discover_module(name: str) -> StepRegistry:
    registry = discover_steps([load_module(name)])
    if not len(registry):
        raise DiscoveryError(f"No steps declared in module {name}")
    return registry


def load_script(path: Path) -> ModuleType:
    # Import a step script file under a private module name.
    if not path.is_file():
        raise DiscoveryError(f"Step script not found: {path}")
    module_name = f"step_kernel_script_{path.stem}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise DiscoveryError(f"Cannot load step script: {path}")
    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception as exc:  # noqa: BLE001 - script errors are discovery failures
        sys.modules.pop(module_name, None)
        raise DiscoveryError(f"Failed to load step script {path}: {type(exc).__name__}: {exc}") from exc
    return module


def load_module(name: str) -> ModuleType:
    try:
        return importlib.import_module(name)
    except Exception as exc:  # noqa: BLE001 - import errors are discovery failures
        raise DiscoveryError(f"Failed to import step module {name}: {type(exc).__name__}: {exc}") from exc


def _instantiate_group(cls: type, group_name: str) -> object:
    try:
        return cls()
    except Exception as exc:  # noqa: BLE001 - the receiver is required for every method step
        raise DiscoveryError(f"Cannot instantiate step group '{group_name}' ({cls.__name__}): {exc}") from exc
