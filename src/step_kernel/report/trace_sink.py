from __future__ import annotations

import json
import sys
from collections.abc import Iterable
from dataclasses import asdict
from pathlib import Path
from typing import Protocol, runtime_checkable

from step_kernel.kernel.context import ExecutionContext, StepResult
from step_kernel.report.summary import format_elapsed


# StepTraceSink is a port-like interface for step trace adapters.
@runtime_checkable
class StepTraceSink(Protocol):
    def emit(self, record: dict[str, object]) -> None:
        """Consume one serialized StepResult."""
        raise NotImplementedError("StepTraceSink is a port; use a concrete adapter.")

    def flush(self) -> None:
        """Flush buffered trace output if supported."""
        raise NotImplementedError("StepTraceSink is a port; use a concrete adapter.")

    def close(self) -> None:
        """Close the sink and release resources."""
        raise NotImplementedError("StepTraceSink is a port; use a concrete adapter.")


class JsonlStepTraceSink:
    # One JSON object per StepResult, in completion order.
    def __init__(self, path: Path) -> None:
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._handle = self._path.open("a", encoding="utf-8")

    def emit(self, record: dict[str, object]) -> None:
        self._handle.write(_dumps(record) + "\n")

    def flush(self) -> None:
        self._handle.flush()

    def close(self) -> None:
        self.flush()
        self._handle.close()


class StdoutStepTraceSink:
    def emit(self, record: dict[str, object]) -> None:
        sys.stdout.write(_dumps(record) + "\n")

    def flush(self) -> None:
        sys.stdout.flush()

    def close(self) -> None:
        self.flush()


def result_to_dict(session_id: str, seq: int, result: StepResult) -> dict[str, object]:
    # Stable key order for diffable traces.
    return {
        "session_id": session_id,
        "seq": seq,
        "name": result.name,
        "depth": result.depth,
        "duration_ns": result.duration_ns,
        "total_duration_ns": result.total_duration_ns,
        "duration": format_elapsed(result.duration_ns),
        "total": format_elapsed(result.total_duration_ns),
        "status": result.status,
        "error": asdict(result.error) if result.error is not None else None,
    }


def emit_session(sink: StepTraceSink, ctx: ExecutionContext) -> int:
    # Emit every logged result of a (possibly partial) session; returns the record count.
    records: Iterable[dict[str, object]] = (
        result_to_dict(ctx.session_id, seq, result) for seq, result in enumerate(ctx.log)
    )
    count = 0
    for record in records:
        sink.emit(record)
        count += 1
    sink.flush()
    return count


def _dumps(record: dict[str, object]) -> str:
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False)
