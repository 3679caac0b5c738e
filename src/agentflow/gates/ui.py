# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""UI collaborators for approvals and workflow notifications.

The engine calls notification hooks best-effort and awaits approval
prompts from approval steps. ConsoleUIManager renders both with Rich.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm

if TYPE_CHECKING:
    from agentflow.config.schema import WorkflowDefinition, WorkflowStep
    from agentflow.engine.context import ExecutionContext
    from agentflow.engine.workflow import ExecutionResult


class UIManager(ABC):
    """Abstract base class for workflow UI.

    Only ``show_approval_prompt`` is required. Notification hooks default
    to no-ops; failures raised from them are logged by the engine and
    never abort a run.
    """

    async def show_workflow_start(self, workflow: WorkflowDefinition, context: ExecutionContext) -> None:
        """Called once before the first step runs."""
        return None

    async def show_step_progress(self, step: WorkflowStep, context: ExecutionContext) -> None:
        """Called before each step is dispatched."""
        return None

    async def show_workflow_complete(self, workflow: WorkflowDefinition, result: ExecutionResult) -> None:
        """Called when the run terminates successfully."""
        return None

    async def show_workflow_error(
        self,
        workflow: WorkflowDefinition,
        error: BaseException,
        context: ExecutionContext,
    ) -> None:
        """Called when the run terminates with an error."""
        return None

    @abstractmethod
    async def show_approval_prompt(
        self,
        message: str,
        context: ExecutionContext,
        timeout: float | None = None,
    ) -> bool:
        """Present a message and wait for a yes/no decision.

        Args:
            message: The rendered approval message.
            context: The current execution context.
            timeout: Seconds the engine will wait for an answer, if bounded.

        Returns:
            True if approved, False if rejected.
        """
        ...


class ConsoleUIManager(UIManager):
    """Terminal UI using Rich panels and confirm prompts.

    Supports ``auto_approve`` mode for automation, where every approval
    prompt is accepted without user interaction.

    Example:
        >>> ui = ConsoleUIManager(auto_approve=True)
        >>> await ui.show_approval_prompt("Deploy?", context)
        True
    """

    def __init__(
        self,
        console: Console | None = None,
        auto_approve: bool = False,
        quiet: bool = False,
    ) -> None:
        """Initialize the ConsoleUIManager.

        Args:
            console: Rich console for output. Creates one if not provided.
            auto_approve: If True, approves every prompt without asking.
            quiet: If True, only approval prompts are shown.
        """
        self.console = console or Console()
        self.auto_approve = auto_approve
        self.quiet = quiet

    async def show_workflow_start(self, workflow: WorkflowDefinition, context: ExecutionContext) -> None:
        if self.quiet:
            return
        title = f"[bold cyan]Workflow: {workflow.id}[/bold cyan]"
        body = workflow.description or f"{len(workflow.steps)} steps"
        self.console.print(Panel(body, title=title, border_style="cyan"))

    async def show_step_progress(self, step: WorkflowStep, context: ExecutionContext) -> None:
        if self.quiet:
            return
        iteration = context.metadata.iteration_count
        label = f" - {step.description}" if step.description else ""
        self.console.print(
            f"[dim][{iteration}][/dim] [cyan]{step.type}[/cyan] [bold]{step.id}[/bold]{label}"
        )

    async def show_workflow_complete(self, workflow: WorkflowDefinition, result: ExecutionResult) -> None:
        if self.quiet:
            return
        self.console.print(
            Panel(
                result.summary(),
                title="[bold green]Workflow Complete[/bold green]",
                border_style="green",
            )
        )

    async def show_workflow_error(
        self,
        workflow: WorkflowDefinition,
        error: BaseException,
        context: ExecutionContext,
    ) -> None:
        if self.quiet:
            return
        message = getattr(error, "message", None) or str(error)
        self.console.print(
            Panel(
                f"[red]{message}[/red]",
                title=f"[bold red]Workflow Failed: {workflow.id}[/bold red]",
                border_style="red",
            )
        )

    async def show_approval_prompt(
        self,
        message: str,
        context: ExecutionContext,
        timeout: float | None = None,
    ) -> bool:
        self.console.print()
        self.console.print(
            Panel(
                message,
                title="[bold cyan]Approval Required[/bold cyan]",
                subtitle=f"[dim]{timeout:g}s to respond[/dim]" if timeout else None,
                border_style="cyan",
            )
        )

        if self.auto_approve:
            self.console.print("[dim]Auto-approving (--auto-approve)[/dim]")
            return True

        approved = await asyncio.to_thread(
            Confirm.ask, "[bold]Approve?[/bold]", console=self.console, default=False
        )
        style = "green" if approved else "yellow"
        self.console.print(f"[{style}]{'Approved' if approved else 'Rejected'}[/{style}]")
        return approved
