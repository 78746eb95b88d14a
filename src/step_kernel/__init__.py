from .kernel import ExecutionContext, Runner, StepRegistry, StepResult, step, step_group

__all__ = ["ExecutionContext", "Runner", "StepRegistry", "StepResult", "step", "step_group"]
