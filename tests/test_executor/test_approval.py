"""Unit tests for ApprovalStepExecutor."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from agentflow.config.schema import WorkflowStep
from agentflow.exceptions import ApprovalError
from agentflow.executor.approval import ApprovalStepExecutor
from agentflow.gates.ui import UIManager
from conftest import context_with


@pytest.fixture
def ui() -> MagicMock:
    """Create a UI manager whose prompt approves."""
    manager = MagicMock(spec=UIManager)
    manager.show_approval_prompt = AsyncMock(return_value=True)
    return manager


def approval_step(**fields) -> WorkflowStep:
    data = {"id": "gate", "type": "approval", "message": "Deploy {{ plan.target }}?"}
    data.update(fields)
    return WorkflowStep.model_validate(data)


class TestApprovalStepExecutor:
    """Tests for approval prompts and routing."""

    @pytest.mark.asyncio
    async def test_renders_message(self, ui: MagicMock) -> None:
        """Test the prompt receives the rendered message and the context."""
        ctx = context_with({"plan": {"target": "prod"}})

        result = await ApprovalStepExecutor(ui).execute(approval_step(), ctx)

        assert result.success
        assert result.data == {"approved": True}
        ui.show_approval_prompt.assert_awaited_once_with("Deploy prod?", ctx, None)

    @pytest.mark.asyncio
    async def test_approved_routes(self, ui: MagicMock) -> None:
        """Test approval routes to on_approve, falling back to next."""
        executor = ApprovalStepExecutor(ui)
        ctx = context_with({"plan": {"target": "prod"}})

        step = approval_step(on_approve="ship", next="other")
        result = await executor.execute(step, ctx)
        assert executor.route(step, result, ctx) == "ship"

        fallback = approval_step(next="other")
        result = await executor.execute(fallback, ctx)
        assert executor.route(fallback, result, ctx) == "other"

    @pytest.mark.asyncio
    async def test_rejected_routes(self, ui: MagicMock) -> None:
        """Test rejection routes to on_reject or terminates."""
        ui.show_approval_prompt.return_value = False
        executor = ApprovalStepExecutor(ui)
        ctx = context_with({"plan": {"target": "prod"}})

        step = approval_step(on_approve="ship", on_reject="stop")
        result = await executor.execute(step, ctx)
        assert result.data == {"approved": False}
        assert executor.route(step, result, ctx) == "stop"

        terminal = approval_step(on_approve="ship")
        result = await executor.execute(terminal, ctx)
        assert executor.route(terminal, result, ctx) is None

    @pytest.mark.asyncio
    async def test_timeout_is_rejection(self, ui: MagicMock) -> None:
        """Test an unanswered prompt is rejected with timed_out set."""

        async def never_answers(message, context, timeout=None):
            await asyncio.sleep(1.0)
            return True

        ui.show_approval_prompt = AsyncMock(side_effect=never_answers)
        executor = ApprovalStepExecutor(ui)
        step = approval_step(timeout=0.05, on_reject="stop")
        ctx = context_with({"plan": {"target": "prod"}})

        result = await executor.execute(step, ctx)

        assert result.success
        assert result.data == {"approved": False, "timed_out": True}
        assert executor.route(step, result, ctx) == "stop"

    @pytest.mark.asyncio
    async def test_template_error_fails_step(self, ui: MagicMock) -> None:
        """Test an unrenderable message fails the step without prompting."""
        executor = ApprovalStepExecutor(ui)
        step = approval_step(on_error="handler")
        ctx = context_with({})

        result = await executor.execute(step, ctx)

        assert result.success is False
        assert isinstance(result.error, ApprovalError)
        assert "could not render" in result.error.message
        assert executor.route(step, result, ctx) == "handler"
        ui.show_approval_prompt.assert_not_called()

    @pytest.mark.asyncio
    async def test_prompt_failure_fails_step(self, ui: MagicMock) -> None:
        """Test an exception from the UI becomes a failed result."""
        ui.show_approval_prompt.side_effect = EOFError("stdin closed")

        result = await ApprovalStepExecutor(ui).execute(
            approval_step(), context_with({"plan": {"target": "prod"}})
        )

        assert result.success is False
        assert "EOFError" in result.error.message
