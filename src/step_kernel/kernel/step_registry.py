from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from typing import Any, TypeVar

from step_kernel.kernel.errors import DuplicateStepError, UnknownStepError
from step_kernel.kernel.instrumentation import instrument
from step_kernel.kernel.step import StepBinding, describe, is_async_step, require_zero_args

F = TypeVar("F", bound=Callable[..., Any])


@dataclass
class StepRegistry:
    # Registry maps step names to instrumented bindings, in registration order.
    _bindings: dict[str, StepBinding] = field(default_factory=dict)

    def register(
        self,
        name: str,
        fn: F,
        *,
        default: bool = False,
        description: str | None = None,
    ) -> F:
        # Registration instruments the callable; only the wrapped form is stored and returned.
        if not name:
            raise ValueError("Step name must be a non-empty string")
        require_zero_args(name, fn)
        wrapped = instrument(name, fn)
        self.add(
            StepBinding(
                name=name,
                target=wrapped,
                is_async=is_async_step(fn),
                default=default,
                description=describe(fn) if description is None else description,
            )
        )
        return wrapped

    def step(self, fn: F | None = None, *, name: str | None = None, default: bool = False) -> Any:
        # Decorator form of register(): @registry.step or @registry.step(name=..., default=...).
        def _decorate(target: F) -> F:
            return self.register(name or target.__name__, target, default=default)

        if fn is not None:
            return _decorate(fn)
        return _decorate

    def add(self, binding: StepBinding) -> None:
        existing = self._bindings.get(binding.name)
        if existing is not None:
            if _same_target(existing.target, binding.target):
                return
            raise DuplicateStepError(f"Duplicate step name: {binding.name}")
        self._bindings[binding.name] = binding

    def merge(self, other: StepRegistry) -> None:
        for binding in other.bindings():
            self.add(binding)

    def get(self, name: str) -> StepBinding:
        if name not in self._bindings:
            raise UnknownStepError([name], self.names())
        return self._bindings[name]

    def names(self) -> list[str]:
        return list(self._bindings)

    def bindings(self) -> list[StepBinding]:
        return list(self._bindings.values())

    def default_step(self) -> StepBinding | None:
        defaults = [item for item in self._bindings.values() if item.default]
        if len(defaults) > 1:
            raise DuplicateStepError(f"More than one default step: {[item.name for item in defaults]}")
        return defaults[0] if defaults else None

    def __contains__(self, name: object) -> bool:
        return name in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)

    def __iter__(self) -> Iterator[StepBinding]:
        return iter(list(self._bindings.values()))


def _same_target(left: object, right: object) -> bool:
    # Same function (or the same original behind two wrappers) on the same receiver.
    if left is right:
        return True
    if getattr(left, "__self__", None) is not getattr(right, "__self__", None):
        return False
    left_func = getattr(left, "__func__", left)
    right_func = getattr(right, "__func__", right)
    if left_func is right_func:
        return True
    original = getattr(left_func, "__wrapped__", None)
    return original is not None and original is getattr(right_func, "__wrapped__", None)
