from __future__ import annotations

from collections.abc import Iterable

from step_kernel.kernel.context import StepResult

RULE = "-" * 69
NAME_WIDTH = 20
DURATION_WIDTH = 19

_TICK_NS = 100
_TICKS_PER_SECOND = 10_000_000
_TICKS_PER_MINUTE = 60 * _TICKS_PER_SECOND
_TICKS_PER_HOUR = 60 * _TICKS_PER_MINUTE
_TICKS_PER_DAY = 24 * _TICKS_PER_HOUR


def format_elapsed(ns: int) -> str:
    """Render nanoseconds as ``hh:mm:ss.fffffff`` (100 ns ticks, seven fractional digits).

    Spans of a day or more get a ``d.`` prefix; negative spans a leading ``-``.
    """
    sign = "-" if ns < 0 else ""
    ticks = abs(ns) // _TICK_NS
    days, ticks = divmod(ticks, _TICKS_PER_DAY)
    hours, ticks = divmod(ticks, _TICKS_PER_HOUR)
    minutes, ticks = divmod(ticks, _TICKS_PER_MINUTE)
    seconds, fraction = divmod(ticks, _TICKS_PER_SECOND)
    text = f"{hours:02d}:{minutes:02d}:{seconds:02d}.{fraction:07d}"
    if days:
        text = f"{days}.{text}"
    return sign + text


def render_summary(results: Iterable[StepResult]) -> str:
    """Render the steps summary table.

    Rows follow completion order, so nested steps appear before the step that
    called them. The Total row sums only top-level invocations; nested totals
    are already part of their parent's total.
    """
    items = list(results)
    lines = [
        RULE,
        "Steps Summary",
        RULE,
        _row("Step", "Duration", "Total"),
        _row("-----", "-" * 16, "-" * 16),
    ]
    for item in items:
        lines.append(_data_row(item.name, format_elapsed(item.duration_ns), format_elapsed(item.total_duration_ns)))
    lines.append(RULE)
    grand_total = sum(item.total_duration_ns for item in items if item.is_top_level)
    lines.append(_cell("Total", NAME_WIDTH) + format_elapsed(grand_total))
    return "\n".join(lines) + "\n"


def _row(name: str, duration: str, total: str) -> str:
    return _cell(name, NAME_WIDTH) + _cell(duration, DURATION_WIDTH) + total


def _data_row(name: str, duration: str, total: str) -> str:
    # Data rows sit one column right of the header grid; long names still get one space.
    return f"{name:<20} {duration:<18} {total}"


def _cell(text: str, width: int) -> str:
    # Overlong values are kept whole and followed by a single space.
    if len(text) >= width:
        return text + " "
    return text.ljust(width)
