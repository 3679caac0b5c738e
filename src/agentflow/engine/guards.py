"""Safety guards that bound workflow execution.

Each guard is a pure check run before every step. A guard that trips
raises a GuardViolation subclass naming the exceeded bound and the
current value; the workflow executor turns it into a failed run.

Limits resolve in this order: explicit guard argument, then the
workflow definition override, then the module default.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from agentflow.config.schema import (
    DEFAULT_MAX_DURATION,
    DEFAULT_MAX_ERRORS,
    DEFAULT_MAX_ITERATIONS,
)
from agentflow.exceptions import (
    CycleDetectedError,
    MaxErrorsError,
    MaxIterationsError,
    WorkflowTimeoutError,
)

if TYPE_CHECKING:
    from agentflow.config.schema import WorkflowDefinition
    from agentflow.engine.context import ExecutionContext

# Wide enough for a loop of up to three steps to repeat max_repeats times.
DEFAULT_CYCLE_WINDOW = 9
DEFAULT_CYCLE_MAX_REPEATS = 3


class SafetyGuard(ABC):
    """Abstract base class for pre-step safety checks."""

    name: str = "guard"

    @abstractmethod
    def check(self, context: ExecutionContext, workflow: WorkflowDefinition) -> None:
        """Check the guard before the current step executes.

        Args:
            context: The context, with ``metadata.current_step`` set to the
                step about to run.
            workflow: The workflow definition being executed.

        Raises:
            GuardViolation: If the bound is exceeded.
        """
        ...


class IterationGuard(SafetyGuard):
    """Fails once the number of dispatched steps reaches the maximum.

    Example:
        >>> guard = IterationGuard(max_iterations=5)
        >>> guard.check(ctx, workflow)  # raises on the 6th step
    """

    name = "iteration"

    def __init__(self, max_iterations: int | None = None) -> None:
        self.max_iterations = max_iterations

    def limit_for(self, workflow: WorkflowDefinition) -> int:
        """Return the effective iteration limit."""
        if self.max_iterations is not None:
            return self.max_iterations
        return workflow.max_iterations or DEFAULT_MAX_ITERATIONS

    def check(self, context: ExecutionContext, workflow: WorkflowDefinition) -> None:
        limit = self.limit_for(workflow)
        count = context.metadata.iteration_count
        if count >= limit:
            history = list(context.metadata.visited_steps)
            raise MaxIterationsError(
                f"Workflow '{workflow.id}' exceeded maximum iterations ({limit}): "
                f"{count} steps already executed",
                iterations=count,
                max_iterations=limit,
                step_id=context.metadata.current_step or None,
                step_history=history,
            )


class DurationGuard(SafetyGuard):
    """Fails once the run has been going for the maximum duration."""

    name = "duration"

    def __init__(self, max_duration: float | None = None) -> None:
        self.max_duration = max_duration

    def limit_for(self, workflow: WorkflowDefinition) -> float:
        """Return the effective duration limit in seconds."""
        if self.max_duration is not None:
            return self.max_duration
        return workflow.max_duration or DEFAULT_MAX_DURATION

    def check(self, context: ExecutionContext, workflow: WorkflowDefinition) -> None:
        limit = self.limit_for(workflow)
        elapsed = context.elapsed()
        if elapsed >= limit:
            raise WorkflowTimeoutError(
                f"Workflow '{workflow.id}' exceeded maximum duration ({limit:g}s): "
                f"{elapsed:.1f}s elapsed",
                elapsed_seconds=elapsed,
                timeout_seconds=limit,
                step_id=context.metadata.current_step or None,
            )


class ErrorGuard(SafetyGuard):
    """Fails once the number of failed steps reaches the maximum."""

    name = "error"

    def __init__(self, max_errors: int | None = None) -> None:
        self.max_errors = max_errors

    def limit_for(self, workflow: WorkflowDefinition) -> int:
        """Return the effective error limit."""
        if self.max_errors is not None:
            return self.max_errors
        return workflow.max_errors or DEFAULT_MAX_ERRORS

    def check(self, context: ExecutionContext, workflow: WorkflowDefinition) -> None:
        limit = self.limit_for(workflow)
        errors = context.metadata.error_count
        if errors >= limit:
            raise MaxErrorsError(
                f"Workflow '{workflow.id}' exceeded maximum errors ({limit}): "
                f"{errors} steps failed",
                errors=errors,
                max_errors=limit,
                step_id=context.metadata.current_step or None,
            )


class CycleGuard(SafetyGuard):
    """Fails when the step about to run keeps recurring in recent history.

    The guard looks at the last ``window`` visited steps and trips if the
    current step already appears ``max_repeats`` times among them. With the
    defaults, a self-loop trips on its fourth run, a two-step loop on its
    seventh step and a three-step loop on its tenth, well before the
    iteration cap is reached.
    """

    name = "cycle"

    def __init__(
        self,
        window: int = DEFAULT_CYCLE_WINDOW,
        max_repeats: int = DEFAULT_CYCLE_MAX_REPEATS,
    ) -> None:
        if window < 1 or max_repeats < 1:
            raise ValueError("CycleGuard window and max_repeats must be at least 1")
        self.window = window
        self.max_repeats = max_repeats

    def check(self, context: ExecutionContext, workflow: WorkflowDefinition) -> None:
        step_id = context.metadata.current_step
        if not step_id:
            return

        recent = list(context.metadata.visited_steps[-self.window :])
        occurrences = recent.count(step_id)
        if occurrences >= self.max_repeats:
            raise CycleDetectedError(
                f"Cycle detected in workflow '{workflow.id}': step '{step_id}' ran "
                f"{occurrences} times in the last {len(recent)} steps "
                f"(limit {self.max_repeats})",
                occurrences=occurrences,
                max_repeats=self.max_repeats,
                window=self.window,
                step_id=step_id,
                step_history=recent,
            )


def default_guards(workflow: WorkflowDefinition) -> list[SafetyGuard]:
    """Build the guards used when none are supplied explicitly.

    Args:
        workflow: The workflow definition, for its cycle detection flag.

    Returns:
        Iteration, duration and error guards, plus a cycle guard when the
        workflow enables cycle detection.
    """
    guards: list[SafetyGuard] = [IterationGuard(), DurationGuard(), ErrorGuard()]
    if workflow.detect_cycles:
        guards.append(CycleGuard())
    return guards
