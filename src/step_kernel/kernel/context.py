from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Literal

from step_kernel.kernel.errors import CallStackImbalanceError, SessionActiveError


@dataclass(frozen=True, slots=True)
class ErrorInfo:
    # ErrorInfo records the exception that escaped a step body.
    type: str
    message: str
    where: str

    @classmethod
    def from_exception(cls, exc: BaseException, *, where: str) -> ErrorInfo:
        return cls(type=type(exc).__name__, message=str(exc), where=where)


@dataclass(frozen=True, slots=True)
class StepResult:
    # One completed step invocation.
    # duration_ns is exclusive (own body only), total_duration_ns is inclusive.
    name: str
    duration_ns: int
    total_duration_ns: int
    depth: int = 0
    status: Literal["ok", "error"] = "ok"
    error: ErrorInfo | None = None

    @property
    def duration(self) -> timedelta:
        return timedelta(microseconds=self.duration_ns / 1000)

    @property
    def total_duration(self) -> timedelta:
        return timedelta(microseconds=self.total_duration_ns / 1000)

    @property
    def is_top_level(self) -> bool:
        return self.depth == 0


@dataclass(slots=True)
class StackFrame:
    # In-flight entry on the call stack; children subtract their totals from exclusive_ns.
    name: str
    depth: int
    exclusive_ns: int = 0


_ACTIVE: ContextVar[ExecutionContext | None] = ContextVar("step_kernel_active_context", default=None)


@dataclass(slots=True)
class ExecutionContext:
    # One execution session: owns the call stack and the completion-ordered log.
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    _stack: list[StackFrame] = field(default_factory=list)
    _log: list[StepResult] = field(default_factory=list)

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def log(self) -> tuple[StepResult, ...]:
        return tuple(self._log)

    def peek(self) -> StackFrame | None:
        return self._stack[-1] if self._stack else None

    def push(self, name: str) -> StackFrame:
        frame = StackFrame(name=name, depth=len(self._stack))
        self._stack.append(frame)
        return frame

    def pop(self, frame: StackFrame, elapsed_ns: int, error: BaseException | None = None) -> StepResult:
        # Finalize the frame pushed by the same wrapper invocation.
        if not self._stack or self._stack[-1] is not frame:
            found = self._stack[-1].name if self._stack else None
            raise CallStackImbalanceError(
                f"Call stack pop for step '{frame.name}' found {found!r} on top (depth {len(self._stack)})"
            )
        self._stack.pop()
        result = StepResult(
            name=frame.name,
            duration_ns=frame.exclusive_ns + elapsed_ns,
            total_duration_ns=elapsed_ns,
            depth=frame.depth,
            status="ok" if error is None else "error",
            error=None if error is None else ErrorInfo.from_exception(error, where=frame.name),
        )
        self._log.append(result)
        if self._stack:
            # The direct caller's exclusive time excludes this child's inclusive time.
            self._stack[-1].exclusive_ns -= elapsed_ns
        return result

    def ensure_balanced(self) -> None:
        if self._stack:
            pending = [item.name for item in self._stack]
            raise CallStackImbalanceError(f"Call stack not empty after top-level step returned: {pending}")

    def top_level(self) -> list[StepResult]:
        return [item for item in self._log if item.is_top_level]

    def grand_total_ns(self) -> int:
        # Nested totals are already embedded in their parent's total.
        return sum(item.total_duration_ns for item in self._log if item.is_top_level)

    def first_error(self) -> StepResult | None:
        for item in self._log:
            if item.status == "error":
                return item
        return None

    @contextmanager
    def activate(self) -> Iterator[ExecutionContext]:
        # Bind this session as the target of every instrumented step call.
        if _ACTIVE.get() is not None:
            raise SessionActiveError("An execution session is already active")
        token = _ACTIVE.set(self)
        try:
            yield self
        finally:
            _ACTIVE.reset(token)


def current_context() -> ExecutionContext | None:
    return _ACTIVE.get()
