"""Parallel step executor.

Runs the nested steps of a parallel group concurrently against the same
context snapshot and waits for all of them to settle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from agentflow.engine.context import StepResult
from agentflow.exceptions import ConfigurationError, StepExecutionError
from agentflow.executor.base import BaseStepExecutor, utc_now

if TYPE_CHECKING:
    from agentflow.config.schema import WorkflowStep
    from agentflow.engine.context import ExecutionContext
    from agentflow.executor.base import ExecutorRegistry

logger = logging.getLogger(__name__)


class ParallelStepExecutor(BaseStepExecutor):
    """Executes nested steps concurrently with a settle-all join.

    Each nested step sees the context as it was before the group started,
    so siblings cannot observe each other's results. A failing sibling
    never cancels the others. The group's data lists every outcome in
    declared order::

        [
            {"step_id": "lint", "status": "success", "result": {...}},
            {"step_id": "test", "status": "failed", "error": "..."},
        ]

    The group succeeds when at least ``min_success`` nested steps succeed
    (all of them when unset).
    """

    def __init__(self, registry: ExecutorRegistry) -> None:
        """Initialize the ParallelStepExecutor.

        Args:
            registry: Registry used to dispatch nested steps by type.
        """
        super().__init__()
        self.registry = registry

    async def execute(self, step: WorkflowStep, context: ExecutionContext) -> StepResult:
        nested = step.steps or []
        if not nested:
            raise ConfigurationError(
                f"Parallel step '{step.id}' has no nested steps",
                step_id=step.id,
            )

        start_time = utc_now()
        logger.debug(f"Parallel step '{step.id}' starting {len(nested)} nested steps")

        outcomes = await asyncio.gather(
            *(self._run_nested(child, context) for child in nested),
            return_exceptions=True,
        )

        # Configuration errors are fatal, but only after every sibling settled.
        for outcome in outcomes:
            if isinstance(outcome, ConfigurationError):
                raise outcome

        entries: list[dict[str, Any]] = []
        succeeded = 0
        for child, outcome in zip(nested, outcomes):
            entries.append(self._summarize(child, outcome))
            if isinstance(outcome, StepResult) and outcome.success:
                succeeded += 1

        required = step.min_success if step.min_success is not None else len(nested)
        logger.debug(
            f"Parallel step '{step.id}' settled: {succeeded}/{len(nested)} succeeded "
            f"(required {required})"
        )

        if succeeded >= required:
            return StepResult.ok(step.id, entries, start_time)

        failed_ids = [entry["step_id"] for entry in entries if entry["status"] == "failed"]
        return StepResult.failed(
            step.id,
            StepExecutionError(
                f"Parallel step '{step.id}': {succeeded}/{len(nested)} nested steps "
                f"succeeded, {required} required. Failed: {', '.join(failed_ids)}",
                step_id=step.id,
            ),
            start_time,
            data=entries,
        )

    async def _run_nested(self, child: WorkflowStep, context: ExecutionContext) -> StepResult:
        executor = self.registry.get(child.type)
        return await executor.execute(child, context)

    @staticmethod
    def _summarize(child: WorkflowStep, outcome: StepResult | BaseException) -> dict[str, Any]:
        """Convert one nested outcome into its entry in the group's data."""
        if isinstance(outcome, BaseException):
            return {
                "step_id": child.id,
                "status": "failed",
                "error": f"{type(outcome).__name__}: {outcome}",
            }
        if outcome.success:
            return {"step_id": child.id, "status": "success", "result": outcome.data}
        return {"step_id": child.id, "status": "failed", "error": outcome.error_message}
