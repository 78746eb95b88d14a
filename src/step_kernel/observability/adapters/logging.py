from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from step_kernel.observability.domain.logging import LEVELS, LogMessage, is_enabled

if TYPE_CHECKING:
    from step_kernel.config.models import LoggingConfig


class StreamLogSink:
    # One compact JSON object per line; stderr keeps stdout free for the report.
    def __init__(self, stream: TextIO | None = None, *, min_level: str = "warning") -> None:
        _check_level(min_level)
        self._stream = stream
        self._min_level = min_level

    def emit(self, message: LogMessage) -> None:
        if not is_enabled(message, self._min_level):
            return
        stream = self._stream if self._stream is not None else sys.stderr
        stream.write(json.dumps(_log_to_dict(message), separators=(",", ":"), ensure_ascii=False, default=str) + "\n")

    def close(self) -> None:
        stream = self._stream if self._stream is not None else sys.stderr
        stream.flush()


class JsonlLogSink:
    # File-backed structured log sink; appends and flushes per record.
    def __init__(self, path: Path, *, min_level: str = "warning") -> None:
        _check_level(min_level)
        self._path = path
        self._min_level = min_level
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open("a", encoding="utf-8")

    def emit(self, message: LogMessage) -> None:
        if not is_enabled(message, self._min_level):
            return
        payload = json.dumps(_log_to_dict(message), separators=(",", ":"), ensure_ascii=False, default=str)
        self._file.write(payload + "\n")
        self._file.flush()

    def close(self) -> None:
        self._file.close()


class NullLogSink:
    def emit(self, message: LogMessage) -> None:
        _ = message

    def close(self) -> None:
        return None


def build_log_sink(config: LoggingConfig) -> StreamLogSink | JsonlLogSink | NullLogSink:
    # Sink selection follows the logging section of the config.
    if config.sink == "none":
        return NullLogSink()
    if config.sink == "jsonl":
        if not config.path:
            raise ValueError("logging.path is required when sink is 'jsonl'")
        return JsonlLogSink(Path(config.path), min_level=config.level)
    return StreamLogSink(min_level=config.level)


def _check_level(level: str) -> None:
    if level not in LEVELS:
        raise ValueError(f"log level must be one of {sorted(LEVELS)}")


def _log_to_dict(message: LogMessage) -> dict[str, object]:
    return {
        "level": message.level,
        "message": message.message,
        "timestamp": message.timestamp.isoformat().replace("+00:00", "Z"),
        "fields": message.fields,
    }
