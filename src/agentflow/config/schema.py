# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Pydantic models for workflow definitions.

This module defines the models used to validate and parse workflow
documents. Models are frozen: the engine only ever reads them.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

StepType = Literal["agent", "transform", "condition", "parallel", "approval"]

DEFAULT_MAX_ITERATIONS = 100
DEFAULT_MAX_DURATION = 300.0
DEFAULT_MAX_ERRORS = 10
DEFAULT_MAX_CONTEXT_SIZE = 100


class WorkflowStep(BaseModel):
    """A single node in the workflow graph."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    id: str
    """Unique step identifier within the workflow."""

    type: StepType
    """Step type, selects the executor."""

    description: str | None = None
    """Human-readable description of the step."""

    # Agent steps
    agent: str | None = None
    """Name of the agent to invoke."""

    input: str | None = None
    """Id of a prior step whose data is passed explicitly to the agent."""

    # Transform steps
    transform: str | None = None
    """Expression producing the step's data."""

    # Condition steps
    condition: str | None = None
    """Boolean expression deciding between 'then' and 'else'."""

    then: str | None = None
    """Step id when the condition is true."""

    else_: str | None = Field(default=None, alias="else")
    """Step id when the condition is false."""

    # Parallel steps
    steps: list[WorkflowStep] | None = None
    """Nested steps executed concurrently."""

    min_success: int | None = Field(default=None, ge=0)
    """Minimum nested successes for the group to succeed. None means all."""

    # Approval steps
    message: str | None = None
    """Message shown to the approver (Jinja2 template)."""

    on_approve: str | None = None
    """Step id when approved. Falls back to 'next'."""

    on_reject: str | None = None
    """Step id when rejected. None terminates the workflow."""

    # Routing
    next: str | None = None
    """Step id on success. None terminates the workflow."""

    on_error: str | None = None
    """Step id on failure. None fails the workflow."""

    # Retry and timeout
    max_retries: int = Field(default=1, ge=1)
    """Total attempts for agent steps. 1 means no retry."""

    retry_delay: float | None = Field(default=None, ge=0)
    """Initial backoff delay in seconds. None uses the retry policy default."""

    timeout: float | None = Field(default=None, gt=0)
    """Per-attempt timeout in seconds."""

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Ensure the step id is not blank."""
        if not v or not v.strip():
            raise ValueError("Step id cannot be empty")
        return v

    @model_validator(mode="after")
    def validate_step_type(self) -> WorkflowStep:
        """Ensure the step has the fields its type requires."""
        required = {
            "agent": "agent",
            "transform": "transform",
            "condition": "condition",
            "approval": "message",
        }
        field_name = required.get(self.type)
        if field_name is not None:
            value = getattr(self, field_name)
            if value is None or not str(value).strip():
                raise ValueError(
                    f"{self.type} step '{self.id}' requires a non-empty '{field_name}' field"
                )

        if self.type == "parallel":
            if not self.steps:
                raise ValueError(
                    f"parallel step '{self.id}' requires 'steps' with at least one step"
                )
            if self.min_success is not None and self.min_success > len(self.steps):
                raise ValueError(
                    f"parallel step '{self.id}' min_success ({self.min_success}) "
                    f"cannot exceed number of steps ({len(self.steps)})"
                )
        return self

    def routing_targets(self) -> dict[str, str]:
        """Return the routing fields that are set, keyed by field name."""
        targets = {
            "next": self.next,
            "on_error": self.on_error,
            "then": self.then,
            "else": self.else_,
            "on_approve": self.on_approve,
            "on_reject": self.on_reject,
        }
        return {name: target for name, target in targets.items() if target is not None}


class WorkflowDefinition(BaseModel):
    """Top-level workflow definition."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    """Unique workflow identifier."""

    description: str | None = None
    """Human-readable workflow description."""

    version: str | None = None
    """Semantic version string."""

    steps: list[WorkflowStep]
    """Ordered steps. Execution starts at the first one."""

    max_iterations: int | None = Field(default=None, ge=1)
    """Maximum step executions. None uses the default (100)."""

    max_duration: float | None = Field(default=None, gt=0)
    """Maximum wall-clock seconds. None uses the default (300)."""

    max_errors: int | None = Field(default=None, ge=1)
    """Maximum failed steps. None uses the default (10)."""

    detect_cycles: bool = False
    """Enable the cycle guard."""

    max_context_size: int = Field(default=DEFAULT_MAX_CONTEXT_SIZE, ge=1)
    """Maximum number of step results kept in the context."""

    trace: bool = False
    """Record an execution trace in the result."""

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        """Ensure the workflow id is not blank."""
        if not v or not v.strip():
            raise ValueError("Workflow id cannot be empty")
        return v

    @field_validator("steps")
    @classmethod
    def validate_steps(cls, v: list[WorkflowStep]) -> list[WorkflowStep]:
        """Ensure there is at least one step."""
        if not v:
            raise ValueError("Workflow must contain at least one step")
        return v

    @property
    def entry_step(self) -> WorkflowStep:
        """Return the step execution starts from."""
        return self.steps[0]

    def find_step(self, step_id: str) -> WorkflowStep | None:
        """Find a top-level step by id.

        Args:
            step_id: The step id to look up.

        Returns:
            The step if found, None otherwise.
        """
        return next((s for s in self.steps if s.id == step_id), None)

    def iter_steps(self) -> list[WorkflowStep]:
        """Return all steps, including nested parallel steps, depth first."""
        collected: list[WorkflowStep] = []

        def collect(steps: list[WorkflowStep]) -> None:
            for step in steps:
                collected.append(step)
                if step.steps:
                    collect(step.steps)

        collect(self.steps)
        return collected
