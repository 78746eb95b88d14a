from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

from step_kernel.kernel.context import ExecutionContext
from step_kernel.kernel.errors import StepExecutionError, UnknownStepError
from step_kernel.kernel.step import StepBinding
from step_kernel.kernel.step_registry import StepRegistry
from step_kernel.observability.adapters.logging import NullLogSink
from step_kernel.observability.domain.logging import LogMessage, LogSink

SelectionPolicy = Literal["default", "all", "usage"]


@dataclass(frozen=True, slots=True)
class Runner:
    # Runner resolves requested step names and invokes them in order, one session per run.
    registry: StepRegistry
    on_empty: SelectionPolicy = "default"
    default_step: str | None = None
    log_sink: LogSink = field(default_factory=NullLogSink)

    def select(self, tokens: Sequence[str]) -> list[StepBinding]:
        # Every token is resolved before anything runs, so a typo never causes partial execution.
        if not tokens:
            return self._select_empty()
        unknown = [token for token in tokens if token not in self.registry]
        if unknown:
            raise UnknownStepError(unknown, self.registry.names())
        return [self.registry.get(token) for token in tokens]

    def run(self, tokens: Sequence[str], *, context: ExecutionContext | None = None) -> ExecutionContext:
        selected = self.select(tokens)
        ctx = context if context is not None else ExecutionContext()
        with ctx.activate():
            self._log("info", "session started", ctx, steps=[item.name for item in selected])
            for binding in selected:
                start = self._begin(binding, ctx)
                try:
                    if binding.is_async:
                        # asyncio.run copies the current contextvars, so the active session is visible.
                        asyncio.run(binding.target())
                    else:
                        binding.target()
                except (Exception, SystemExit) as exc:  # noqa: BLE001 - sys.exit() in a step is a step failure too
                    raise self._failure(binding, ctx, exc, start) from exc
                self._finish(binding, ctx)
            self._log("info", "session finished", ctx, grand_total_ns=ctx.grand_total_ns())
        return ctx

    async def arun(self, tokens: Sequence[str], *, context: ExecutionContext | None = None) -> ExecutionContext:
        # Coroutine form of run() for callers already inside an event loop.
        selected = self.select(tokens)
        ctx = context if context is not None else ExecutionContext()
        with ctx.activate():
            self._log("info", "session started", ctx, steps=[item.name for item in selected])
            for binding in selected:
                start = self._begin(binding, ctx)
                try:
                    if binding.is_async:
                        await binding.target()
                    else:
                        binding.target()
                except (Exception, SystemExit) as exc:  # noqa: BLE001 - sys.exit() in a step is a step failure too
                    raise self._failure(binding, ctx, exc, start) from exc
                self._finish(binding, ctx)
            self._log("info", "session finished", ctx, grand_total_ns=ctx.grand_total_ns())
        return ctx

    def _select_empty(self) -> list[StepBinding]:
        if self.on_empty == "all":
            return self.registry.bindings()
        if self.on_empty == "default":
            if self.default_step is not None:
                return [self.registry.get(self.default_step)]
            default = self.registry.default_step()
            if default is not None:
                return [default]
        # "usage", or "default" with nothing designated: run nothing.
        return []

    def _begin(self, binding: StepBinding, ctx: ExecutionContext) -> int:
        self._log("debug", "step started", ctx, step=binding.name)
        return len(ctx.log)

    def _finish(self, binding: StepBinding, ctx: ExecutionContext) -> None:
        # After a top-level call returns, every push must have been popped.
        ctx.ensure_balanced()
        self._log(
            "debug",
            "step finished",
            ctx,
            step=binding.name,
            total_duration_ns=ctx.log[-1].total_duration_ns if ctx.log else None,
        )

    def _failure(self, binding: StepBinding, ctx: ExecutionContext, exc: BaseException, start: int) -> StepExecutionError:
        ctx.ensure_balanced()
        failed_step = _innermost_failure(ctx, exc, start) or binding.name
        self._log(
            "error",
            "step failed",
            ctx,
            step=binding.name,
            failed_step=failed_step,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return StepExecutionError(binding.name, failed_step, exc, ctx)

    def _log(self, level: str, message: str, ctx: ExecutionContext, **fields: object) -> None:
        self.log_sink.emit(LogMessage(level=level, message=message, fields={"session_id": ctx.session_id, **fields}))


def _innermost_failure(ctx: ExecutionContext, exc: BaseException, start: int) -> str | None:
    # Children complete before parents, so the first matching error entry is where the exception was raised.
    for item in ctx.log[start:]:
        if item.error is not None and item.error.type == type(exc).__name__ and item.error.message == str(exc):
            return item.name
    return None
