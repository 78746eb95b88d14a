from .logging import JsonlLogSink, NullLogSink, StreamLogSink, build_log_sink

__all__ = ["JsonlLogSink", "NullLogSink", "StreamLogSink", "build_log_sink"]
