"""Pytest configuration and shared fixtures for Agentflow tests.

This module contains fixtures used across multiple test modules.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from agentflow.config.schema import WorkflowDefinition
from agentflow.engine.context import ExecutionContext, StepResult
from agentflow.executor.base import utc_now


def make_workflow(steps: list[dict[str, Any]], **overrides: Any) -> WorkflowDefinition:
    """Build a WorkflowDefinition from plain step dicts."""
    return WorkflowDefinition.model_validate({"id": "test-workflow", "steps": steps, **overrides})


def context_with(results: dict[str, Any], input_data: Any = None, failed: tuple[str, ...] = ()) -> ExecutionContext:
    """Build a context holding successful results for the given step data."""
    ctx = ExecutionContext.create("test-workflow", input_data)
    for step_id, data in results.items():
        if step_id in failed:
            result = StepResult.failed(step_id, RuntimeError("boom"), utc_now())
        else:
            result = StepResult.ok(step_id, data, utc_now())
        ctx = ctx.add_result(step_id, result)
    return ctx


@pytest.fixture
def sample_workflow_yaml() -> str:
    """Return a minimal valid workflow YAML for testing."""
    return """\
id: test-workflow
description: A test workflow
steps:
  - id: plan
    type: agent
    agent: planner
    next: count
    on_error: count
  - id: count
    type: transform
    transform: plan.files.length
"""


@pytest.fixture
def tmp_workflow_file(tmp_path: Path, sample_workflow_yaml: str) -> Path:
    """Create a temporary workflow YAML file."""
    workflow_file = tmp_path / "test-workflow.yaml"
    workflow_file.write_text(sample_workflow_yaml)
    return workflow_file


@pytest.fixture
def agents_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Create an importable module of test agents and return its name."""
    module_dir = tmp_path / "agents_pkg"
    module_dir.mkdir()
    (module_dir / "sample_agents.py").write_text(
        """\
from agentflow.providers.base import CallableAgentExecutor


def planner(payload):
    return {"files": ["a.py", "b.py"]}


async def coder(payload):
    return {"written": len(payload["context"]["plan"]["files"])}


def broken(payload):
    raise RuntimeError("agent exploded")


AGENTS = {"planner": planner, "coder": coder, "broken": broken}

executor = CallableAgentExecutor(AGENTS)


def make_executor():
    return CallableAgentExecutor(AGENTS)


NOT_AN_EXECUTOR = 42
"""
    )
    monkeypatch.syspath_prepend(str(module_dir))
    return "sample_agents"
