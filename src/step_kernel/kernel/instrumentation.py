from __future__ import annotations

import functools
import inspect
import types
from collections.abc import Callable
from time import perf_counter_ns
from typing import Any, TypeVar

from step_kernel.kernel.context import current_context

F = TypeVar("F", bound=Callable[..., Any])


def instrument(name: str, fn: F) -> F:
    # Wrap a step so every call is pushed/popped on the active session's call stack.
    # The wrapper keeps the calling shape: coroutine functions get a coroutine wrapper.
    if is_instrumented(fn):
        if getattr(fn, "__step_instrumented__") == name:
            return fn
        # Registered under another name: wrap the original so the log carries this name.
        return _rename(name, fn)

    if inspect.iscoroutinefunction(fn):

        @functools.wraps(fn)
        async def _timed_async(*args: Any, **kwargs: Any) -> Any:
            ctx = current_context()
            if ctx is None:
                return await fn(*args, **kwargs)
            frame = ctx.push(name)
            started = perf_counter_ns()
            error: BaseException | None = None
            try:
                # Timer brackets full completion, including suspension.
                return await fn(*args, **kwargs)
            except BaseException as exc:
                error = exc
                raise
            finally:
                ctx.pop(frame, perf_counter_ns() - started, error)

        wrapper: Callable[..., Any] = _timed_async
    else:

        @functools.wraps(fn)
        def _timed(*args: Any, **kwargs: Any) -> Any:
            ctx = current_context()
            if ctx is None:
                return fn(*args, **kwargs)
            frame = ctx.push(name)
            started = perf_counter_ns()
            error: BaseException | None = None
            try:
                return fn(*args, **kwargs)
            except BaseException as exc:
                error = exc
                raise
            finally:
                ctx.pop(frame, perf_counter_ns() - started, error)

        wrapper = _timed

    setattr(wrapper, "__step_instrumented__", name)
    return wrapper  # type: ignore[return-value]


def is_instrumented(fn: object) -> bool:
    return getattr(fn, "__step_instrumented__", None) is not None


def _rename(name: str, fn: F) -> F:
    receiver = getattr(fn, "__self__", None)
    func = getattr(fn, "__func__", None)
    if receiver is not None and func is not None:
        # Bound method: re-wrap the plain function, then bind it to the same receiver.
        return types.MethodType(instrument(name, func.__wrapped__), receiver)  # type: ignore[return-value]
    return instrument(name, fn.__wrapped__)  # type: ignore[attr-defined]
