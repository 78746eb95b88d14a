from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path

from step_kernel.app.cli import apply_cli_overrides, build_parser, parse_args
from step_kernel.config.loader import ConfigError, load_config
from step_kernel.config.models import AppConfig
from step_kernel.kernel.context import ExecutionContext
from step_kernel.kernel.discovery import discover_module, discover_script
from step_kernel.kernel.errors import (
    CallStackImbalanceError,
    DiscoveryError,
    StepDefinitionError,
    StepExecutionError,
    UnknownStepError,
)
from step_kernel.kernel.runner import Runner
from step_kernel.kernel.step_registry import StepRegistry
from step_kernel.observability.adapters.logging import build_log_sink
from step_kernel.observability.domain.logging import LogMessage, LogSink
from step_kernel.report.summary import render_summary
from step_kernel.report.trace_sink import JsonlStepTraceSink, StdoutStepTraceSink, StepTraceSink, emit_session

EXIT_OK = 0
EXIT_STEP_FAILED = 1
EXIT_USAGE = 2
EXIT_SETUP_FAILED = 3
EXIT_INTERNAL = 4

DEFAULT_SCRIPT = "steps.py"


def run(argv: Sequence[str] | None = None) -> int:
    # Load config, discover steps, run the selection, then report.
    args = parse_args(argv)
    try:
        config = load_config(Path(args.config) if args.config else None)
        apply_cli_overrides(config, args)
        log_sink = build_log_sink(config.logging)
    except (ConfigError, ValueError, OSError) as exc:
        _error(f"invalid configuration: {exc}")
        return EXIT_SETUP_FAILED

    try:
        return _run_with_config(config, list(args.steps), list_only=args.list, log_sink=log_sink)
    finally:
        log_sink.close()


def run_with_registry(
    registry: StepRegistry,
    tokens: Sequence[str],
    *,
    config: AppConfig | None = None,
    log_sink: LogSink | None = None,
) -> int:
    # Run an already-discovered registry; used by embedding callers and tests.
    config = config if config is not None else AppConfig()
    sink = log_sink if log_sink is not None else build_log_sink(config.logging)
    runner = Runner(
        registry=registry,
        on_empty=config.selection.on_empty,
        default_step=config.selection.default_step,
        log_sink=sink,
    )
    try:
        selected = runner.select(tokens)
    except UnknownStepError as exc:
        _error(str(exc))
        return EXIT_USAGE
    if not selected:
        _print_usage(registry)
        return EXIT_USAGE

    ctx = ExecutionContext()
    code = EXIT_OK
    failure: Exception | None = None
    try:
        runner.run(tokens, context=ctx)
    except StepExecutionError as exc:
        code = EXIT_STEP_FAILED
        failure = exc
    except CallStackImbalanceError as exc:
        code = EXIT_INTERNAL
        failure = exc
        sink.emit(LogMessage(level="error", message="call stack imbalance", fields={"detail": str(exc)}))

    # Partial sessions are still reported.
    _write_report(config, ctx)
    _write_trace(config, ctx)
    if failure is not None:
        _error(str(failure))
    return code


def _run_with_config(config: AppConfig, tokens: list[str], *, list_only: bool, log_sink: LogSink) -> int:
    try:
        registry = _discover(config)
    except (DiscoveryError, StepDefinitionError) as exc:
        log_sink.emit(LogMessage(level="error", message="discovery failed", fields={"detail": str(exc)}))
        _error(str(exc))
        return EXIT_SETUP_FAILED

    if list_only:
        sys.stdout.write(format_step_list(registry))
        return EXIT_OK
    return run_with_registry(registry, tokens, config=config, log_sink=log_sink)


def _discover(config: AppConfig) -> StepRegistry:
    if config.module is not None:
        return discover_module(config.module)
    return discover_script(Path(config.script or DEFAULT_SCRIPT))


def format_step_list(registry: StepRegistry) -> str:
    # One line per step: default marker, name, async marker, first docstring line.
    lines = []
    for binding in registry.bindings():
        marker = "*" if binding.default else " "
        kind = "async" if binding.is_async else ""
        lines.append(f"{marker} {binding.name:<20} {kind:<6} {binding.description}".rstrip())
    return "\n".join(lines) + "\n"


def _write_report(config: AppConfig, ctx: ExecutionContext) -> None:
    if not config.report.enabled:
        return
    text = render_summary(ctx.log)
    sys.stdout.write(text)
    if config.report.path:
        path = Path(config.report.path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")


def _write_trace(config: AppConfig, ctx: ExecutionContext) -> None:
    if not config.trace.enabled or not config.trace.path:
        return
    sink: StepTraceSink
    if config.trace.path == "-":
        sink = StdoutStepTraceSink()
    else:
        sink = JsonlStepTraceSink(Path(config.trace.path))
    try:
        emit_session(sink, ctx)
    finally:
        sink.close()


def _print_usage(registry: StepRegistry) -> None:
    sys.stderr.write(build_parser().format_usage())
    sys.stderr.write("available steps:\n")
    sys.stderr.write(format_step_list(registry))


def _error(message: str) -> None:
    sys.stderr.write(f"error: {message}\n")
