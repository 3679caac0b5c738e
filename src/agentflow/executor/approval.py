"""Approval step executor.

Pauses the workflow for a human decision through the injected UIManager.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from agentflow.engine.context import StepResult
from agentflow.exceptions import ApprovalError, ConfigurationError, TemplateError
from agentflow.executor.base import BaseStepExecutor, utc_now
from agentflow.executor.template import TemplateRenderer

if TYPE_CHECKING:
    from agentflow.config.schema import WorkflowStep
    from agentflow.engine.context import ExecutionContext
    from agentflow.gates.ui import UIManager

logger = logging.getLogger(__name__)


class ApprovalStepExecutor(BaseStepExecutor):
    """Presents a step's message and waits for approval.

    The message is a Jinja2 template rendered against the step data.
    When the step sets ``timeout`` and no answer arrives in time, the
    step is treated as rejected with ``timed_out`` set in its data.

    Routing:
        approved -> ``on_approve`` (falls back to ``next``)
        rejected -> ``on_reject`` (None terminates the workflow)
        failure  -> ``on_error``
    """

    def __init__(self, ui_manager: UIManager, renderer: TemplateRenderer | None = None) -> None:
        super().__init__()
        self.ui_manager = ui_manager
        self.renderer = renderer or TemplateRenderer()

    async def execute(self, step: WorkflowStep, context: ExecutionContext) -> StepResult:
        if not step.message:
            raise ConfigurationError(
                f"Approval step '{step.id}' is missing required field 'message'",
                step_id=step.id,
            )

        start_time = utc_now()
        try:
            message = self.renderer.render_for_context(step.message, context)
            prompt = self.ui_manager.show_approval_prompt(message, context, step.timeout)
            if step.timeout is not None:
                approved = await asyncio.wait_for(prompt, timeout=step.timeout)
            else:
                approved = await prompt
        except asyncio.TimeoutError:
            logger.info(f"Approval step '{step.id}' timed out after {step.timeout:g}s, rejecting")
            return StepResult.ok(step.id, {"approved": False, "timed_out": True}, start_time)
        except TemplateError as e:
            return StepResult.failed(
                step.id,
                ApprovalError(
                    f"Approval step '{step.id}' could not render its message: {e.message}",
                    suggestion=e.suggestion,
                    step_id=step.id,
                ),
                start_time,
            )
        except Exception as e:
            return StepResult.failed(
                step.id,
                ApprovalError(
                    f"Approval step '{step.id}' prompt failed: {type(e).__name__}: {e}",
                    step_id=step.id,
                ),
                start_time,
            )

        approved = bool(approved)
        logger.debug(f"Approval step '{step.id}' {'approved' if approved else 'rejected'}")
        return StepResult.ok(step.id, {"approved": approved}, start_time)

    def route(
        self,
        step: WorkflowStep,
        result: StepResult,
        context: ExecutionContext,
    ) -> str | None:
        if not result.success:
            return step.on_error
        if result.data.get("approved"):
            return step.on_approve or step.next
        return step.on_reject
