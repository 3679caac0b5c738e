"""Typer application definition for the Agentflow CLI.

This module defines the main Typer app and global options.
"""

from __future__ import annotations

import contextvars
import logging
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.text import Text

from agentflow import __version__

app = typer.Typer(
    name="agentflow",
    help="Agentflow - Run declarative agent workflows defined in YAML.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console(stderr=True)
output_console = Console()

# Context variable for verbose mode (--verbose flag)
verbose_mode: contextvars.ContextVar[bool] = contextvars.ContextVar("verbose_mode", default=False)


def is_verbose() -> bool:
    """Check if verbose mode is enabled."""
    return verbose_mode.get()


def configure_logging(verbose: bool) -> None:
    """Route agentflow log records to stderr through Rich.

    Args:
        verbose: Show debug records when True, warnings and above otherwise.
    """
    package_logger = logging.getLogger("agentflow")
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    if not any(isinstance(h, RichHandler) for h in package_logger.handlers):
        package_logger.addHandler(
            RichHandler(console=console, show_path=False, rich_tracebacks=verbose)
        )


def format_error(error: Exception) -> Panel:
    """Format an exception for Rich console display.

    Creates a styled Panel with error type, message, location (if available),
    and suggestion (if available).

    Args:
        error: The exception to format.

    Returns:
        Rich Panel with formatted error content.
    """
    from agentflow.exceptions import AgentflowError

    content = Text()

    if isinstance(error, AgentflowError):
        content.append(error.message, style="bold red")

        if error.file_path or error.line_number:
            content.append("\n\n")
            content.append("📍 Location: ", style="yellow")
            if error.file_path:
                content.append(error.file_path, style="cyan")
            if error.line_number:
                if error.file_path:
                    content.append(":", style="yellow")
                content.append(f"line {error.line_number}", style="cyan")

        field_path = getattr(error, "field_path", None)
        if field_path:
            content.append("\n")
            content.append("📋 Field: ", style="yellow")
            content.append(field_path, style="cyan")

        if error.suggestion:
            content.append("\n\n")
            content.append("💡 Suggestion: ", style="green")
            content.append(error.suggestion, style="white")

        error_type = error.error_type
    else:
        content.append(str(error), style="red")
        error_type = type(error).__name__

    return Panel(
        content,
        title=f"[bold red]❌ {error_type}[/bold red]",
        border_style="red",
        padding=(1, 2),
    )


def print_error(error: Exception) -> None:
    """Print a formatted error to stderr."""
    console.print(format_error(error))


def version_callback(value: bool) -> None:
    """Display version information and exit."""
    if value:
        output_console.print(f"Agentflow v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-V",
            help="Show engine debug logs (step dispatch, routing, retries).",
        ),
    ] = False,
) -> None:
    """Agentflow - Run declarative agent workflows defined in YAML."""
    verbose_mode.set(verbose)
    configure_logging(verbose)


@app.command()
def run(
    workflow: Annotated[
        Path,
        typer.Argument(
            help="Path to the workflow YAML or JSON file.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
    executor: Annotated[
        str,
        typer.Option(
            "--executor",
            "-e",
            help="Agent executor as 'module:attribute'. The attribute may be an "
            "AgentExecutor, a mapping of agent names to callables, or a factory.",
        ),
    ],
    raw_inputs: Annotated[
        list[str] | None,
        typer.Option(
            "--input",
            "-i",
            help="Workflow inputs in name=value format. Can be repeated.",
        ),
    ] = None,
    auto_approve: Annotated[
        bool,
        typer.Option(
            "--auto-approve",
            help="Approve every approval step without prompting (for automation).",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option(
            "--quiet",
            "-q",
            help="Only print the final context as JSON.",
        ),
    ] = False,
) -> None:
    """Run a workflow file.

    Agents are provided by an in-process executor loaded from
    --executor. The final step data is printed as JSON to stdout.

    \b
    Examples:
        agentflow run workflow.yaml --executor my_agents:executor
        agentflow run workflow.yaml -e my_agents:AGENTS --input goal="ship it"
        agentflow run workflow.yaml -e my_agents:executor --auto-approve
    """
    import asyncio
    import json

    from agentflow.cli.run import (
        display_execution_result,
        parse_input_flags,
        run_workflow_async,
    )

    try:
        inputs: dict[str, Any] = parse_input_flags(raw_inputs or [])
        result = asyncio.run(
            run_workflow_async(
                workflow,
                inputs,
                executor,
                auto_approve=auto_approve,
                console=None if quiet else console,
            )
        )
    except Exception as e:
        print_error(e)
        raise typer.Exit(code=1) from None

    if not quiet:
        display_execution_result(result, console)

    output_console.print_json(json.dumps(result.context.step_data(), default=str))

    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def validate(
    workflow: Annotated[
        Path,
        typer.Argument(
            help="Path to the workflow YAML or JSON file to validate.",
            exists=True,
            file_okay=True,
            dir_okay=False,
            readable=True,
            resolve_path=True,
        ),
    ],
) -> None:
    """Validate a workflow file without executing it.

    Checks the workflow file for:
    - Valid YAML syntax
    - Valid schema structure and step fields
    - Unique step ids
    - Valid routing targets and input references

    \b
    Examples:
        agentflow validate workflow.yaml
    """
    from agentflow.cli.validate import display_validation_success, validate_workflow_file

    is_valid, definition, warnings = validate_workflow_file(workflow, output_console)

    if is_valid and definition is not None:
        display_validation_success(definition, workflow, warnings, output_console)
    else:
        raise typer.Exit(code=1)
