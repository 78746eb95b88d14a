from .logging import LEVELS, LogMessage, LogSink

__all__ = ["LEVELS", "LogMessage", "LogSink"]
