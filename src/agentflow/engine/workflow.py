"""Workflow execution engine for Agentflow.

This module provides the WorkflowExecutor class, the loop that runs
guards, dispatches steps to their executors, folds results into the
immutable context and follows the executors' routing decisions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from agentflow.config.validator import validate_workflow
from agentflow.engine.context import ExecutionContext, StepResult
from agentflow.engine.expression import ExpressionEvaluator
from agentflow.engine.guards import SafetyGuard, default_guards
from agentflow.exceptions import (
    AgentflowError,
    ConfigurationError,
    GuardViolation,
    StepExecutionError,
)
from agentflow.executor.agent import DEFAULT_AGENT_TIMEOUT, AgentStepExecutor
from agentflow.executor.approval import ApprovalStepExecutor
from agentflow.executor.base import ExecutorRegistry, RetryPolicy, StepExecutor, utc_now
from agentflow.executor.condition import ConditionStepExecutor
from agentflow.executor.parallel import ParallelStepExecutor
from agentflow.executor.transform import TransformStepExecutor

if TYPE_CHECKING:
    from collections.abc import Mapping

    from agentflow.config.schema import WorkflowDefinition, WorkflowStep
    from agentflow.gates.ui import UIManager
    from agentflow.providers.base import AgentExecutor
    from agentflow.providers.resolver import AgentResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TraceEntry:
    """One executed step in a recorded execution trace."""

    iteration: int
    step_id: str
    step_type: str
    success: bool
    duration: float
    next_step: str | None = None
    retries: int | None = None
    error: str | None = None


@dataclass
class ExecutionResult:
    """Outcome of a workflow run.

    Attributes:
        success: Whether the run terminated successfully.
        context: The final execution context.
        error: The error that terminated the run, if it failed.
        trace: Executed steps, when the workflow enables tracing.
    """

    success: bool
    context: ExecutionContext
    error: BaseException | None = None
    trace: list[TraceEntry] = field(default_factory=list)

    @property
    def results(self) -> Mapping[str, StepResult]:
        """Return the step results of the final context."""
        return self.context.results

    @property
    def failed_step(self) -> str | None:
        """Return the id of the step active when the run failed."""
        if self.success:
            return None
        step_id = getattr(self.error, "step_id", None)
        return step_id or self.context.metadata.current_step or None

    @property
    def iteration_count(self) -> int:
        """Return the number of steps dispatched."""
        return self.context.metadata.iteration_count

    @property
    def error_count(self) -> int:
        """Return the number of failed steps."""
        return self.context.metadata.error_count

    @property
    def retries(self) -> int | None:
        """Return the attempts made by the failed step, if known."""
        retries = getattr(self.error, "retries", None)
        if retries is not None:
            return retries
        step_id = self.failed_step
        result = self.context.get_result(step_id) if step_id else None
        return result.retries if result is not None else None

    def summary(self) -> str:
        """Return a one-line human-readable summary of the run."""
        elapsed = self.context.elapsed()
        if self.success:
            return (
                f"Workflow '{self.context.workflow_id}' completed: "
                f"{self.iteration_count} step(s), {self.error_count} error(s), {elapsed:.2f}s"
            )

        attempts = f" after {self.retries} attempt(s)" if self.retries else ""
        message = getattr(self.error, "message", None) or str(self.error)
        return (
            f"Workflow '{self.context.workflow_id}' failed at step '{self.failed_step}'"
            f"{attempts}, {self.error_count} total error(s): {message.splitlines()[0] if message else ''}"
        )


class WorkflowExecutor:
    """Orchestrates workflow execution.

    The WorkflowExecutor manages the complete lifecycle of a run:
    1. Validate the workflow definition
    2. Run safety guards before every step
    3. Dispatch each step to the executor registered for its type
    4. Fold results into the immutable context
    5. Follow routing until a step routes nowhere or something fails

    Executors for transform, condition and parallel steps are always
    registered. The agent executor needs an ``agent_executor`` and the
    approval executor needs a ``ui_manager``.

    Example:
        >>> executor = WorkflowExecutor(workflow, agent_executor=CallableAgentExecutor(agents))
        >>> result = await executor.execute({"goal": "ship it"})
        >>> result.success
        True
    """

    def __init__(
        self,
        workflow: WorkflowDefinition,
        agent_executor: AgentExecutor | None = None,
        ui_manager: UIManager | None = None,
        *,
        resolver: AgentResolver | None = None,
        guards: list[SafetyGuard] | None = None,
        retry_policy: RetryPolicy | None = None,
        evaluator: ExpressionEvaluator | None = None,
        agent_timeout: float | None = DEFAULT_AGENT_TIMEOUT,
    ) -> None:
        """Initialize the WorkflowExecutor.

        Args:
            workflow: The workflow definition to run.
            agent_executor: Performs agent invocations for agent steps.
            ui_manager: Shows approval prompts and receives notifications.
            resolver: Optional agent resolver checked before each agent call.
            guards: Safety guards. Defaults to iteration, duration and error
                guards, plus a cycle guard when the workflow enables it.
            retry_policy: Backoff settings for agent steps.
            evaluator: Expression evaluator for transform and condition steps.
            agent_timeout: Default per-attempt timeout for agent steps.
        """
        self.workflow = workflow
        self.ui_manager = ui_manager
        self.guards = guards if guards is not None else default_guards(workflow)

        evaluator = evaluator or ExpressionEvaluator()
        self.registry = ExecutorRegistry()
        self.registry.register("transform", TransformStepExecutor(evaluator))
        self.registry.register("condition", ConditionStepExecutor(evaluator))
        self.registry.register("parallel", ParallelStepExecutor(self.registry))
        if agent_executor is not None:
            self.registry.register(
                "agent",
                AgentStepExecutor(
                    agent_executor,
                    resolver=resolver,
                    retry_policy=retry_policy,
                    default_timeout=agent_timeout,
                ),
            )
        if ui_manager is not None:
            self.registry.register("approval", ApprovalStepExecutor(ui_manager))

    def register_executor(self, step_type: str, executor: StepExecutor) -> None:
        """Add or replace the executor for a step type."""
        self.registry.register(step_type, executor)

    async def execute(self, input_data: Any = None) -> ExecutionResult:
        """Run the workflow from its first step until it terminates.

        Args:
            input_data: The original workflow input, visible to every step.

        Returns:
            The ExecutionResult. Runtime failures, including guard
            violations, are reported in the result rather than raised.

        Raises:
            ConfigurationError: If the workflow definition is invalid. Raised
                before any step runs.
        """
        for warning in validate_workflow(self.workflow):
            logger.debug(f"Workflow '{self.workflow.id}': {warning}")

        context = ExecutionContext.create(self.workflow.id, input_data)
        trace: list[TraceEntry] = []
        logger.debug(f"Starting workflow '{self.workflow.id}' with {len(self.workflow.steps)} steps")
        await self._notify("show_workflow_start", self.workflow, context)

        step: WorkflowStep = self.workflow.entry_step
        try:
            while True:
                context = context.with_current_step(step.id)
                for guard in self.guards:
                    guard.check(context, self.workflow)
                context = context.increment_iteration()

                logger.debug(
                    f"[Iteration {context.metadata.iteration_count}] "
                    f"Executing {step.type} step: {step.id}"
                )
                await self._notify("show_step_progress", step, context)

                executor, result = await self._execute_step(step, context)
                context = context.add_result(step.id, result)
                if not result.success:
                    context = context.increment_error()
                context = context.prune(self.workflow.max_context_size)

                next_id = executor.route(step, result, context)
                if self.workflow.trace:
                    trace.append(self._trace_entry(step, result, context, next_id))

                if next_id is None:
                    if result.success:
                        break
                    raise StepExecutionError(
                        f"Step '{step.id}' failed after {result.retries or 1} attempt(s), "
                        f"{context.metadata.error_count} total error(s): {result.error_message}",
                        suggestion=getattr(result.error, "suggestion", None)
                        or f"Add an 'on_error' route to step '{step.id}' to handle failures",
                        step_id=step.id,
                        retries=result.retries,
                        cause=result.error,
                    )

                logger.debug(f"Routing: {step.id} -> {next_id}")
                next_step = self.workflow.find_step(next_id)
                if next_step is None:
                    raise ConfigurationError(
                        f"Step '{step.id}' routed to unknown step '{next_id}'",
                        step_id=step.id,
                    )
                step = next_step
        except GuardViolation as e:
            logger.warning(f"Workflow '{self.workflow.id}' stopped by {e.guard} guard: {e.message}")
            return await self._fail(context, e, trace)
        except AgentflowError as e:
            return await self._fail(context, e, trace)

        result = ExecutionResult(success=True, context=context, trace=trace)
        logger.debug(result.summary())
        await self._notify("show_workflow_complete", self.workflow, result)
        return result

    async def _execute_step(
        self,
        step: WorkflowStep,
        context: ExecutionContext,
    ) -> tuple[StepExecutor, StepResult]:
        """Dispatch a step to its executor.

        Configuration errors and unexpected exceptions are recorded as the
        step's failed result before being raised, so the final context shows
        where the run stopped.
        """
        start_time = utc_now()
        try:
            executor = self.registry.get(step.type)
            return executor, await executor.execute(step, context)
        except ConfigurationError as e:
            raise _StepAborted(step, StepResult.failed(step.id, e, start_time), e) from e
        except Exception as e:
            logger.exception(f"Unexpected error executing step '{step.id}'")
            error = StepExecutionError(
                f"Step '{step.id}' raised {type(e).__name__}: {e}",
                step_id=step.id,
                cause=e,
            )
            raise _StepAborted(step, StepResult.failed(step.id, error, start_time), error) from e

    async def _fail(
        self,
        context: ExecutionContext,
        error: AgentflowError,
        trace: list[TraceEntry],
    ) -> ExecutionResult:
        if isinstance(error, _StepAborted):
            context = context.add_result(error.step.id, error.result).increment_error()
            error = error.error

        result = ExecutionResult(success=False, context=context, error=error, trace=trace)
        logger.debug(result.summary())
        await self._notify("show_workflow_error", self.workflow, error, context)
        return result

    async def _notify(self, hook: str, *args: Any) -> None:
        """Call a UI notification hook, logging instead of raising on failure."""
        if self.ui_manager is None:
            return
        try:
            await getattr(self.ui_manager, hook)(*args)
        except Exception as e:
            logger.warning(f"UI notification '{hook}' failed: {type(e).__name__}: {e}")

    @staticmethod
    def _trace_entry(
        step: WorkflowStep,
        result: StepResult,
        context: ExecutionContext,
        next_id: str | None,
    ) -> TraceEntry:
        return TraceEntry(
            iteration=context.metadata.iteration_count,
            step_id=step.id,
            step_type=step.type,
            success=result.success,
            duration=result.duration,
            next_step=next_id,
            retries=result.retries,
            error=result.error_message,
        )


class _StepAborted(AgentflowError):
    """Carries a step's failed result out of the loop alongside the fatal error."""

    def __init__(self, step: WorkflowStep, result: StepResult, error: AgentflowError) -> None:
        self.step = step
        self.result = result
        self.error = error
        super().__init__(error.message)
