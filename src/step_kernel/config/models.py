from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Config models map YAML sections to typed structures.


class SelectionConfig(BaseModel):
    # What to run when no step names are given on the command line.
    model_config = ConfigDict(extra="forbid")
    on_empty: Literal["default", "all", "usage"] = "default"
    default_step: str | None = None


class ReportConfig(BaseModel):
    # Summary report is always printed when enabled; path adds a file copy.
    model_config = ConfigDict(extra="forbid")
    enabled: bool = True
    path: str | None = None


class TraceConfig(BaseModel):
    # JSONL step trace written after the session finishes.
    model_config = ConfigDict(extra="forbid")
    enabled: bool = False
    path: str | None = None

    @model_validator(mode="after")
    def _require_path(self) -> TraceConfig:
        if self.enabled and not self.path:
            raise ValueError("trace.path is required when trace is enabled")
        return self


class LoggingConfig(BaseModel):
    # Structured log sink selection.
    model_config = ConfigDict(extra="forbid")
    sink: Literal["stderr", "jsonl", "none"] = "stderr"
    path: str | None = None
    level: Literal["debug", "info", "warning", "error"] = "warning"

    @model_validator(mode="after")
    def _require_path(self) -> LoggingConfig:
        if self.sink == "jsonl" and not self.path:
            raise ValueError("logging.path is required when sink is 'jsonl'")
        return self


class AppConfig(BaseModel):
    # AppConfig is the top-level typed view of configuration.
    model_config = ConfigDict(extra="forbid")
    version: Literal[1] = 1
    script: str | None = None
    module: str | None = None
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)
    trace: TraceConfig = Field(default_factory=TraceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def _single_source(self) -> AppConfig:
        # A session loads steps from exactly one place.
        if self.script is not None and self.module is not None:
            raise ValueError("script and module are mutually exclusive")
        return self
