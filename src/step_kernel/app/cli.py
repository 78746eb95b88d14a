from __future__ import annotations

import argparse
from collections.abc import Sequence

from step_kernel.config.models import AppConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="step-kernel",
        description="Run named steps from a step script and print a duration summary.",
    )
    parser.add_argument("steps", nargs="*", help="Step names to run, in order")
    parser.add_argument("--config", help="Path to YAML config")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--script", help="Path to the step script (default: steps.py)")
    source.add_argument("--module", help="Dotted module name declaring steps")
    parser.add_argument("--list", action="store_true", help="List discovered steps and exit")
    parser.add_argument(
        "--on-empty",
        choices=["default", "all", "usage"],
        help="What to run when no step names are given",
    )
    parser.add_argument("--trace-path", help="Write a JSONL step trace ('-' for stdout)")
    parser.add_argument("--report-path", help="Also write the summary report to this file")
    parser.add_argument("--log-level", choices=["debug", "info", "warning", "error"])
    return parser


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    # Parse CLI arguments; caller passes argv for testability.
    return build_parser().parse_args(argv)


def apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    # CLI overrides take precedence over config values.
    if args.script is not None:
        config.script = args.script
        config.module = None
    if args.module is not None:
        config.module = args.module
        config.script = None
    if args.on_empty is not None:
        config.selection.on_empty = args.on_empty
    if args.trace_path is not None:
        config.trace.enabled = True
        config.trace.path = args.trace_path
    if args.report_path is not None:
        config.report.path = args.report_path
    if args.log_level is not None:
        config.logging.level = args.log_level
