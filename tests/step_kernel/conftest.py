from __future__ import annotations

import pytest

import step_kernel.kernel.instrumentation as instrumentation


class FakeClock:
    # Deterministic nanosecond clock: time only moves when a step advances it.
    def __init__(self) -> None:
        self.now = 0

    def advance(self, ns: int) -> None:
        self.now += ns

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(instrumentation, "perf_counter_ns", fake)
    return fake
