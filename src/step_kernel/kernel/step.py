from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Literal, TypeVar, overload

from step_kernel.kernel.errors import StepDefinitionError
from step_kernel.kernel.instrumentation import instrument

T = TypeVar("T")
F = TypeVar("F", bound=Callable[..., Any])

Ownership = Literal["function", "method"]


@dataclass(frozen=True, slots=True)
class StepMeta:
    # Metadata attached to a step callable for discovery.
    name: str
    default: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("StepMeta.name must be a non-empty string")


@dataclass(frozen=True, slots=True)
class StepGroupMeta:
    # Metadata attached to a container class whose methods are steps.
    name: str

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("StepGroupMeta.name must be a non-empty string")


@dataclass(frozen=True, slots=True)
class StepBinding:
    # A discovered step: name plus the instrumented callable the driver invokes.
    name: str
    target: Callable[[], Any]
    ownership: Ownership = "function"
    container_cls: type | None = None
    container_attr: str | None = None
    is_async: bool = False
    default: bool = False
    description: str = ""

    def __call__(self) -> Any:
        return self.target()


@overload
def step(target: F) -> F: ...


@overload
def step(*, name: str | None = None, default: bool = False) -> Callable[[F], F]: ...


def step(target: Any = None, *, name: str | None = None, default: bool = False) -> Any:
    # Decorator instruments the callable and attaches StepMeta for discovery.
    # Usable bare (@step) or with options (@step(name="build", default=True)).

    def _decorate(fn: F) -> F:
        if not callable(fn):
            raise StepDefinitionError(f"@step target must be callable: {fn!r}")
        resolved = name or getattr(fn, "__name__", "")
        meta = StepMeta(name=resolved, default=default, description=describe(fn))
        wrapped = instrument(meta.name, fn)
        setattr(wrapped, "__step_meta__", meta)
        return wrapped  # type: ignore[return-value]

    if target is not None:
        return _decorate(target)
    return _decorate


def step_group(*, name: str) -> Callable[[T], T]:
    # Decorator attaches StepGroupMeta to a container class for discovery.
    meta = StepGroupMeta(name=name)

    def _decorate(target: T) -> T:
        setattr(target, "__step_group_meta__", meta)
        return target

    return _decorate


def get_step_meta(target: object) -> StepMeta | None:
    meta = getattr(target, "__step_meta__", None)
    if isinstance(meta, StepMeta):
        return meta
    return None


def get_step_group_meta(target: object) -> StepGroupMeta | None:
    meta = getattr(target, "__step_group_meta__", None)
    if isinstance(meta, StepGroupMeta):
        return meta
    return None


def require_zero_args(name: str, fn: Callable[..., Any]) -> None:
    # Steps are invoked with no arguments; bound receivers are already applied here.
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return
    required = [
        param.name
        for param in signature.parameters.values()
        if param.default is inspect.Parameter.empty
        and param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
    ]
    if required:
        raise StepDefinitionError(
            f"Step '{name}' must be callable without arguments; required parameters: {required}"
        )


def is_async_step(fn: Callable[..., Any]) -> bool:
    return inspect.iscoroutinefunction(fn)


def describe(fn: object) -> str:
    # First docstring line, used by --list.
    doc = inspect.getdoc(fn)
    if not doc:
        return ""
    return doc.strip().splitlines()[0]
