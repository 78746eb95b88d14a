from .summary import format_elapsed, render_summary
from .trace_sink import JsonlStepTraceSink, StdoutStepTraceSink, StepTraceSink, emit_session, result_to_dict

__all__ = [
    "JsonlStepTraceSink",
    "StdoutStepTraceSink",
    "StepTraceSink",
    "emit_session",
    "format_elapsed",
    "render_summary",
    "result_to_dict",
]
