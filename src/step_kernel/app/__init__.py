from .cli import apply_cli_overrides, build_parser, parse_args
from .runtime import format_step_list, run, run_with_registry

__all__ = ["apply_cli_overrides", "build_parser", "format_step_list", "parse_args", "run", "run_with_registry"]
