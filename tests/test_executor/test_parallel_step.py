"""Unit tests for ParallelStepExecutor.

Tests cover:
- Concurrent execution against one context snapshot
- Settle-all semantics when siblings fail
- min_success thresholds
- Configuration errors from nested steps
"""

import asyncio
import time
from typing import Any

import pytest

from agentflow.config.schema import WorkflowStep
from agentflow.exceptions import ConfigurationError, StepExecutionError
from agentflow.executor.agent import AgentStepExecutor
from agentflow.executor.base import ExecutorRegistry
from agentflow.executor.parallel import ParallelStepExecutor
from agentflow.executor.transform import TransformStepExecutor
from agentflow.providers.base import CallableAgentExecutor
from conftest import context_with


def group(children: list[dict[str, Any]], **fields: Any) -> WorkflowStep:
    return WorkflowStep.model_validate({"id": "group", "type": "parallel", "steps": children, **fields})


def make_executor(agents: dict[str, Any] | None = None) -> ParallelStepExecutor:
    registry = ExecutorRegistry()
    registry.register("transform", TransformStepExecutor())
    registry.register("agent", AgentStepExecutor(CallableAgentExecutor(agents or {})))
    executor = ParallelStepExecutor(registry)
    registry.register("parallel", executor)
    return executor


class TestParallelExecution:
    """Tests for concurrent execution."""

    @pytest.mark.asyncio
    async def test_all_succeed(self) -> None:
        """Test the group data lists each outcome in declared order."""
        executor = make_executor()
        step = group(
            [
                {"id": "double", "type": "transform", "transform": "input * 2"},
                {"id": "square", "type": "transform", "transform": "input * input"},
            ]
        )

        result = await executor.execute(step, context_with({}, input_data=3))

        assert result.success
        assert result.data == [
            {"step_id": "double", "status": "success", "result": 6},
            {"step_id": "square", "status": "success", "result": 9},
        ]

    @pytest.mark.asyncio
    async def test_runs_concurrently(self) -> None:
        """Test nested agents overlap in time."""

        async def sleeper(payload: dict[str, Any]) -> str:
            await asyncio.sleep(0.2)
            return "slept"

        executor = make_executor({"sleeper": sleeper})
        step = group([{"id": f"s{i}", "type": "agent", "agent": "sleeper"} for i in range(3)])

        start = time.monotonic()
        result = await executor.execute(step, context_with({}))
        elapsed = time.monotonic() - start

        assert result.success
        assert elapsed < 0.5

    @pytest.mark.asyncio
    async def test_siblings_isolated(self) -> None:
        """Test siblings see the pre-group snapshot, not each other."""
        seen: list[dict[str, Any]] = []

        async def observer(payload: dict[str, Any]) -> str:
            seen.append(payload["context"])
            return "observed"

        executor = make_executor({"observer": observer})
        step = group(
            [
                {"id": "first", "type": "transform", "transform": "'first'"},
                {"id": "second", "type": "agent", "agent": "observer"},
            ]
        )

        await executor.execute(step, context_with({"before": 1}))

        assert seen == [{"before": 1}]


class TestParallelFailures:
    """Tests for failing siblings."""

    @pytest.mark.asyncio
    async def test_failure_does_not_cancel_siblings(self) -> None:
        """Test a failing sibling leaves the others to complete."""
        finished: list[str] = []

        async def slow(payload: dict[str, Any]) -> str:
            await asyncio.sleep(0.05)
            finished.append("slow")
            return "ok"

        async def broken(payload: dict[str, Any]) -> str:
            raise RuntimeError("broken sibling")

        executor = make_executor({"slow": slow, "broken": broken})
        step = group(
            [
                {"id": "a", "type": "agent", "agent": "slow"},
                {"id": "b", "type": "agent", "agent": "broken"},
            ]
        )

        result = await executor.execute(step, context_with({}))

        assert finished == ["slow"]
        assert result.success is False
        assert isinstance(result.error, StepExecutionError)
        assert "Failed: b" in result.error.message
        assert result.data[0] == {"step_id": "a", "status": "success", "result": "ok"}
        assert result.data[1]["status"] == "failed"
        assert "broken sibling" in result.data[1]["error"]

    @pytest.mark.asyncio
    async def test_min_success(self) -> None:
        """Test the group succeeds when enough siblings succeed."""
        executor = make_executor()
        step = group(
            [
                {"id": "good", "type": "transform", "transform": "1"},
                {"id": "bad", "type": "transform", "transform": "missing"},
            ],
            min_success=1,
        )

        result = await executor.execute(step, context_with({}))

        assert result.success
        assert [entry["status"] for entry in result.data] == ["success", "failed"]

    @pytest.mark.asyncio
    async def test_min_success_zero(self) -> None:
        """Test min_success=0 always succeeds."""
        executor = make_executor()
        step = group([{"id": "bad", "type": "transform", "transform": "missing"}], min_success=0)

        result = await executor.execute(step, context_with({}))

        assert result.success

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(self) -> None:
        """Test a nested configuration error is raised after siblings settle."""
        executor = make_executor()
        step = group(
            [
                {"id": "ok", "type": "transform", "transform": "1"},
                {"id": "unknown", "type": "agent", "agent": "nobody"},
            ]
        )

        with pytest.raises(ConfigurationError, match="nobody"):
            await executor.execute(step, context_with({}))

    @pytest.mark.asyncio
    async def test_nested_groups(self) -> None:
        """Test a group can contain another group."""
        executor = make_executor()
        step = group(
            [
                {"id": "outer", "type": "transform", "transform": "1"},
                {
                    "id": "inner",
                    "type": "parallel",
                    "steps": [{"id": "leaf", "type": "transform", "transform": "2"}],
                },
            ]
        )

        result = await executor.execute(step, context_with({}))

        assert result.data[1]["result"] == [{"step_id": "leaf", "status": "success", "result": 2}]
