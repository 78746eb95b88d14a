from __future__ import annotations

from collections.abc import Iterable


class StepKernelError(Exception):
    # Base class for every error raised by the step kernel.
    pass


class DiscoveryError(StepKernelError):
    # Fatal: the step script could not be loaded or declares nothing callable.
    pass


class DuplicateStepError(DiscoveryError):
    # Two different callables claim the same step name.
    pass


class StepDefinitionError(StepKernelError, TypeError):
    # A declared step cannot be called with zero arguments.
    pass


class UnknownStepError(StepKernelError, KeyError):
    # Requested step names that do not match any discovered binding.
    def __init__(self, names: Iterable[str], available: Iterable[str] = ()) -> None:
        self.names = tuple(names)
        self.available = tuple(available)
        super().__init__(*self.names)

    def __str__(self) -> str:
        message = f"unknown step(s): {', '.join(self.names)}"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        return message


class CallStackImbalanceError(StepKernelError, RuntimeError):
    # Internal invariant violation: push/pop pairs did not match.
    pass


class SessionActiveError(StepKernelError, RuntimeError):
    # A second execution session was started while one is still active.
    pass


class StepExecutionError(StepKernelError):
    # An exception escaped a step body; carries the session for partial reporting.
    def __init__(self, step_name: str, failed_step: str, cause: BaseException, context: object) -> None:
        super().__init__(f"step '{failed_step}' failed: {type(cause).__name__}: {cause}")
        self.step_name = step_name
        self.failed_step = failed_step
        self.cause = cause
        self.context = context
