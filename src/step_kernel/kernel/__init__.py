from .context import ErrorInfo, ExecutionContext, StackFrame, StepResult, current_context
from .discovery import discover_module, discover_script, discover_steps, load_module, load_script
from .errors import (
    CallStackImbalanceError,
    DiscoveryError,
    DuplicateStepError,
    SessionActiveError,
    StepDefinitionError,
    StepExecutionError,
    StepKernelError,
    UnknownStepError,
)
from .instrumentation import instrument, is_instrumented
from .runner import Runner, SelectionPolicy
from .step import StepBinding, StepGroupMeta, StepMeta, step, step_group
from .step_registry import StepRegistry

# Kernel exports are minimal and runtime-focused.
__all__ = [
    "CallStackImbalanceError",
    "DiscoveryError",
    "DuplicateStepError",
    "ErrorInfo",
    "ExecutionContext",
    "Runner",
    "SelectionPolicy",
    "SessionActiveError",
    "StackFrame",
    "StepBinding",
    "StepDefinitionError",
    "StepExecutionError",
    "StepGroupMeta",
    "StepKernelError",
    "StepMeta",
    "StepRegistry",
    "StepResult",
    "UnknownStepError",
    "current_context",
    "discover_module",
    "discover_script",
    "discover_steps",
    "instrument",
    "is_instrumented",
    "load_module",
    "load_script",
    "step",
    "step_group",
]
