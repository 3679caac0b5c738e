"""Implementation of the 'agentflow validate' command.

This module provides functionality to validate workflow files without
executing them, displaying detailed error information.
"""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from agentflow.config.loader import load_workflow
from agentflow.config.schema import (
    DEFAULT_MAX_DURATION,
    DEFAULT_MAX_ERRORS,
    DEFAULT_MAX_ITERATIONS,
)
from agentflow.config.validator import validate_workflow
from agentflow.exceptions import AgentflowError

if TYPE_CHECKING:
    from agentflow.config.schema import WorkflowDefinition, WorkflowStep


def validate_workflow_file(
    workflow_path: Path,
    console: Console | None = None,
) -> tuple[bool, WorkflowDefinition | None, list[str]]:
    """Validate a workflow file.

    Args:
        workflow_path: Path to the workflow file.
        console: Optional Rich console for output.

    Returns:
        A tuple of (is_valid, definition_or_none, warnings).
    """
    output_console = console if console is not None else Console()

    try:
        definition = load_workflow(workflow_path)
        return True, definition, validate_workflow(definition)
    except AgentflowError as e:
        display_validation_error(e, workflow_path, output_console)
        return False, None, []
    except Exception as e:
        output_console.print(
            Panel(
                f"[bold red]Unexpected Error[/bold red]\n\n{e}",
                title="[red]Validation Failed[/red]",
                border_style="red",
            )
        )
        return False, None, []


def display_validation_error(
    error: AgentflowError,
    workflow_path: Path,
    console: Console,
) -> None:
    """Display a validation error with Rich formatting."""
    content = f"[bold red]{error.error_type}[/bold red]\n\n"
    content += f"[dim]File:[/dim] {workflow_path}\n\n"
    content += error.message

    field_path = getattr(error, "field_path", None)
    if field_path:
        content += f"\n\n[yellow]📋 Field:[/yellow] {field_path}"

    if error.suggestion:
        content += f"\n\n[yellow]💡 Suggestion:[/yellow] {error.suggestion}"

    console.print(
        Panel(
            content,
            title="[red]Validation Failed[/red]",
            border_style="red",
        )
    )


def _describe_routes(step: WorkflowStep) -> str:
    targets = step.routing_targets()
    if not targets:
        return "[dim]end[/dim]"
    return ", ".join(f"{name} → {target}" for name, target in targets.items())


def display_validation_success(
    definition: WorkflowDefinition,
    workflow_path: Path,
    warnings: list[str],
    console: Console,
) -> None:
    """Display validation success with a workflow summary.

    Args:
        definition: The validated workflow definition.
        workflow_path: Path to the workflow file.
        warnings: Non-fatal issues found during validation.
        console: Rich console for output.
    """
    type_counts = Counter(step.type for step in definition.iter_steps())

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Key", style="dim")
    table.add_column("Value")

    table.add_row("Id", definition.id)
    if definition.description:
        table.add_row("Description", definition.description)
    table.add_row("File", str(workflow_path))
    table.add_row("Entry Step", definition.entry_step.id)
    table.add_row(
        "Steps",
        ", ".join(f"{count} {step_type}" for step_type, count in sorted(type_counts.items())),
    )
    table.add_row("Max Iterations", str(definition.max_iterations or DEFAULT_MAX_ITERATIONS))
    table.add_row("Max Duration", f"{definition.max_duration or DEFAULT_MAX_DURATION:g}s")
    table.add_row("Max Errors", str(definition.max_errors or DEFAULT_MAX_ERRORS))
    if definition.detect_cycles:
        table.add_row("Cycle Detection", "enabled")

    console.print(
        Panel(
            table,
            title="[green]Validation Successful[/green]",
            border_style="green",
        )
    )

    step_table = Table(title="Steps", show_lines=True)
    step_table.add_column("Id", style="cyan")
    step_table.add_column("Type", width=10)
    step_table.add_column("Details")
    step_table.add_column("Routes")

    for step in definition.steps:
        if step.type == "agent":
            details = f"agent: {step.agent}"
            if step.max_retries > 1:
                details += f" (max_retries: {step.max_retries})"
        elif step.type == "parallel":
            details = ", ".join(child.id for child in step.steps or [])
        else:
            details = step.transform or step.condition or step.message or ""
        step_table.add_row(step.id, step.type, details, _describe_routes(step))

    console.print(step_table)

    for warning in warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")
