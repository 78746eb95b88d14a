from .adapters import JsonlLogSink, NullLogSink, StreamLogSink, build_log_sink
from .domain import LogMessage, LogSink

__all__ = [
    "LogMessage",
    "LogSink",
    "JsonlLogSink",
    "NullLogSink",
    "StreamLogSink",
    "build_log_sink",
]
