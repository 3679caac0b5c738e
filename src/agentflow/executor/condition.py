"""Condition step executor.

A condition step evaluates a boolean expression and branches to ``then``
or ``else``. Evaluation errors go to ``on_error``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from agentflow.engine.context import StepResult
from agentflow.engine.expression import ExpressionEvaluator
from agentflow.exceptions import ConfigurationError, ExpressionError, StepExecutionError
from agentflow.executor.base import BaseStepExecutor, utc_now

if TYPE_CHECKING:
    from agentflow.config.schema import WorkflowStep
    from agentflow.engine.context import ExecutionContext

logger = logging.getLogger(__name__)


class ConditionStepExecutor(BaseStepExecutor):
    """Evaluates a step's ``condition`` and routes on the outcome."""

    def __init__(self, evaluator: ExpressionEvaluator | None = None) -> None:
        super().__init__()
        self.evaluator = evaluator or ExpressionEvaluator()

    async def execute(self, step: WorkflowStep, context: ExecutionContext) -> StepResult:
        if not step.condition:
            raise ConfigurationError(
                f"Condition step '{step.id}' is missing required field 'condition'",
                step_id=step.id,
            )

        start_time = utc_now()
        try:
            outcome = self.evaluator.evaluate_condition(step.condition, context)
        except ExpressionError as e:
            return StepResult.failed(
                step.id,
                StepExecutionError(
                    f"Condition step '{step.id}' failed: {e.message}",
                    suggestion=e.suggestion,
                    step_id=step.id,
                    cause=e,
                ),
                start_time,
            )

        logger.debug(f"Condition '{step.condition}' on step '{step.id}' evaluated to {outcome}")
        return StepResult.ok(step.id, {"result": outcome}, start_time)

    def route(
        self,
        step: WorkflowStep,
        result: StepResult,
        context: ExecutionContext,
    ) -> str | None:
        if not result.success:
            return step.on_error
        return step.then if result.data["result"] else step.else_
