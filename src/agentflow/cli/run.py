"""Implementation of the 'agentflow run' command.

This module provides input parsing, agent executor loading and result
display for running workflow files from the command line.
"""

from __future__ import annotations

import importlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from rich.console import Console
from rich.table import Table

from agentflow.config.loader import load_workflow
from agentflow.engine.workflow import ExecutionResult, WorkflowExecutor
from agentflow.exceptions import ValidationError
from agentflow.gates.ui import ConsoleUIManager
from agentflow.providers.base import AgentExecutor, CallableAgentExecutor

if TYPE_CHECKING:
    from agentflow.gates.ui import UIManager


def parse_input_flags(raw_inputs: list[str]) -> dict[str, Any]:
    """Parse name=value input flags into a dictionary.

    Args:
        raw_inputs: List of "name=value" strings from CLI.

    Returns:
        Dictionary of parsed input name-value pairs.

    Raises:
        typer.BadParameter: If input format is invalid.
    """
    inputs: dict[str, Any] = {}

    for raw in raw_inputs:
        if "=" not in raw:
            raise typer.BadParameter(f"Invalid input format: '{raw}'. Expected format: name=value")

        name, value = raw.split("=", 1)
        name = name.strip()

        if not name:
            raise typer.BadParameter(f"Empty input name in: '{raw}'")

        inputs[name] = coerce_value(value.strip())

    return inputs


def coerce_value(value: str) -> Any:
    """Coerce a string value to an appropriate Python type.

    Args:
        value: The string value to coerce.

    Returns:
        The coerced value (bool, None, int, float, list, dict, or str).
    """
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None

    if value.startswith(("[", "{")):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            pass

    try:
        if "." in value:
            return float(value)
        return int(value)
    except ValueError:
        pass

    return value


def load_agent_executor(spec: str) -> AgentExecutor:
    """Load an agent executor from a 'module:attribute' reference.

    The attribute may be an AgentExecutor instance, a mapping of agent
    names to callables, or a zero-argument factory returning either.

    Args:
        spec: Reference like "my_agents:executor".

    Returns:
        The agent executor.

    Raises:
        ValidationError: If the reference is malformed or does not resolve
            to something usable as an agent executor.
    """
    module_name, sep, attr_name = spec.partition(":")
    if not sep or not module_name or not attr_name:
        raise ValidationError(
            f"Invalid executor reference '{spec}'",
            suggestion="Use the form 'module:attribute', e.g. 'my_agents:executor'",
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValidationError(
            f"Cannot import executor module '{module_name}': {e}",
            suggestion="Check that the module is on PYTHONPATH",
        ) from e

    target = getattr(module, attr_name, None)
    if target is None:
        raise ValidationError(f"Module '{module_name}' has no attribute '{attr_name}'")

    if isinstance(target, type) or (callable(target) and not isinstance(target, (AgentExecutor, Mapping))):
        target = target()

    if isinstance(target, AgentExecutor):
        return target
    if isinstance(target, Mapping):
        return CallableAgentExecutor(target)

    raise ValidationError(
        f"'{spec}' is a {type(target).__name__}, not an agent executor",
        suggestion="Point --executor at an AgentExecutor, a dict of agent callables, or a factory",
    )


async def run_workflow_async(
    workflow_path: Path,
    inputs: dict[str, Any],
    executor_spec: str,
    auto_approve: bool = False,
    console: Console | None = None,
    ui_manager: UIManager | None = None,
) -> ExecutionResult:
    """Load and execute a workflow file.

    Args:
        workflow_path: Path to the workflow file.
        inputs: Workflow input values.
        executor_spec: 'module:attribute' reference to the agent executor.
        auto_approve: If True, approval steps are approved automatically.
        console: Console for progress output. None keeps the run quiet
            apart from approval prompts.
        ui_manager: Optional UI manager overriding the console one.

    Returns:
        The execution result.

    Raises:
        ConfigurationError: If the workflow is invalid.
        ValidationError: If the executor reference is invalid.
    """
    definition = load_workflow(workflow_path)
    agent_executor = load_agent_executor(executor_spec)

    if ui_manager is None:
        ui_manager = ConsoleUIManager(
            console=console or Console(stderr=True),
            auto_approve=auto_approve,
            quiet=console is None,
        )

    try:
        return await WorkflowExecutor(definition, agent_executor, ui_manager).execute(inputs)
    finally:
        await agent_executor.close()


def display_execution_result(result: ExecutionResult, console: Console) -> None:
    """Display a table of executed steps and the run summary.

    Args:
        result: The execution result.
        console: Rich console for output.
    """
    table = Table(title="Steps", show_lines=False)
    table.add_column("Step", style="cyan")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Error", style="red")

    for step_id, step_result in result.results.items():
        status = "[green]ok[/green]" if step_result.success else "[red]failed[/red]"
        table.add_row(
            step_id,
            status,
            f"{step_result.duration:.2f}s",
            str(step_result.retries) if step_result.retries is not None else "-",
            step_result.error_message or "",
        )

    console.print(table)
    style = "green" if result.success else "red"
    console.print(f"[{style}]{result.summary()}[/{style}]")
