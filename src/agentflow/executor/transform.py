"""Transform step executor."""

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


class TransformStepExecutor(BaseStepExecutor):
    """Evaluates a step's ``transform`` expression into its data.

    Example:
        >>> step = WorkflowStep(id="count", type="transform", transform="plan.files.length")
        >>> result = await TransformStepExecutor().execute(step, context)
        >>> result.data
        1
    """

    def __init__(self, evaluator: ExpressionEvaluator | None = None) -> None:
        super().__init__()
        self.evaluator = evaluator or ExpressionEvaluator()

    async def execute(self, step: WorkflowStep, context: ExecutionContext) -> StepResult:
        if not step.transform:
            raise ConfigurationError(
                f"Transform step '{step.id}' is missing required field 'transform'",
                step_id=step.id,
            )

        start_time = utc_now()
        try:
            value = self.evaluator.evaluate_in_context(step.transform, context)
        except ExpressionError as e:
            logger.debug(f"Transform step '{step.id}' failed: {e.message}")
            return StepResult.failed(
                step.id,
                StepExecutionError(
                    f"Transform step '{step.id}' failed: {e.message}",
                    suggestion=e.suggestion,
                    step_id=step.id,
                    cause=e,
                ),
                start_time,
            )

        return StepResult.ok(step.id, value, start_time)
