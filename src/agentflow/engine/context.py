"""Immutable execution context for Agentflow.

This module provides the ExecutionContext value threaded through every
step of a workflow run, along with the StepResult it accumulates.

Every mutator returns a new context. The results mapping is copied on
write (a shallow copy of the id -> result table), so earlier contexts stay
valid and can be read concurrently by parallel branches.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class StepResult:
    """Outcome of a single step execution.

    Attributes:
        step_id: Id of the step that produced this result.
        success: Whether the step succeeded.
        data: Opaque payload produced by the step.
        error: Error recorded when the step failed.
        start_time: When the first attempt started.
        end_time: When the final attempt finished.
        retries: Number of attempts made, for steps that retry.
    """

    step_id: str
    success: bool
    data: Any = None
    error: BaseException | None = None
    start_time: datetime = field(default_factory=_now)
    end_time: datetime = field(default_factory=_now)
    retries: int | None = None

    @property
    def duration(self) -> float:
        """Return the step duration in seconds."""
        return (self.end_time - self.start_time).total_seconds()

    @property
    def error_message(self) -> str | None:
        """Return the first line of the error message, if any."""
        if self.error is None:
            return None
        message = getattr(self.error, "message", None) or str(self.error)
        return message.split("\n")[0]

    @classmethod
    def ok(
        cls,
        step_id: str,
        data: Any,
        start_time: datetime,
        retries: int | None = None,
    ) -> StepResult:
        """Build a successful result ending now."""
        return cls(
            step_id=step_id,
            success=True,
            data=data,
            start_time=start_time,
            end_time=_now(),
            retries=retries,
        )

    @classmethod
    def failed(
        cls,
        step_id: str,
        error: BaseException,
        start_time: datetime,
        retries: int | None = None,
        data: Any = None,
    ) -> StepResult:
        """Build a failed result ending now."""
        return cls(
            step_id=step_id,
            success=False,
            data=data,
            error=error,
            start_time=start_time,
            end_time=_now(),
            retries=retries,
        )


@dataclass(frozen=True)
class ContextMetadata:
    """Bookkeeping counters carried by the execution context."""

    current_step: str = ""
    """Id of the step currently (or most recently) executing."""

    visited_steps: tuple[str, ...] = ()
    """Ids of completed steps in execution order."""

    iteration_count: int = 0
    """Number of steps dispatched so far."""

    error_count: int = 0
    """Number of failed steps so far."""


@dataclass(frozen=True)
class ExecutionContext:
    """Immutable state of a workflow run.

    Example:
        >>> ctx = ExecutionContext.create("demo", {"goal": "ship"})
        >>> ctx2 = ctx.add_result("plan", StepResult(step_id="plan", success=True, data=1))
        >>> ctx.get_result("plan") is None
        True
        >>> ctx2.get_result("plan").data
        1
    """

    workflow_id: str
    start_time: datetime
    input: Any = None
    results: Mapping[str, StepResult] = field(default_factory=lambda: MappingProxyType({}))
    metadata: ContextMetadata = field(default_factory=ContextMetadata)

    @classmethod
    def create(
        cls,
        workflow_id: str,
        input: Any = None,
        start_time: datetime | None = None,
    ) -> ExecutionContext:
        """Create the initial context of a workflow run.

        Args:
            workflow_id: The workflow identifier.
            input: Original workflow input.
            start_time: Optional start time, defaults to now (UTC).

        Returns:
            A fresh context with no results.
        """
        return cls(workflow_id=workflow_id, start_time=start_time or _now(), input=input)

    def add_result(self, step_id: str, result: StepResult) -> ExecutionContext:
        """Return a new context with the step's result recorded.

        The step becomes the current step and is appended to the visited
        steps.
        """
        results = dict(self.results)
        results[step_id] = result
        return replace(
            self,
            results=MappingProxyType(results),
            metadata=replace(
                self.metadata,
                current_step=step_id,
                visited_steps=(*self.metadata.visited_steps, step_id),
            ),
        )

    def get_result(self, step_id: str) -> StepResult | None:
        """Get a step result by id."""
        return self.results.get(step_id)

    def increment_iteration(self) -> ExecutionContext:
        """Return a new context with the iteration counter incremented."""
        return replace(
            self,
            metadata=replace(self.metadata, iteration_count=self.metadata.iteration_count + 1),
        )

    def increment_error(self) -> ExecutionContext:
        """Return a new context with the error counter incremented."""
        return replace(
            self,
            metadata=replace(self.metadata, error_count=self.metadata.error_count + 1),
        )

    def with_current_step(self, step_id: str) -> ExecutionContext:
        """Return a new context with the current step updated."""
        return replace(self, metadata=replace(self.metadata, current_step=step_id))

    def step_data(self) -> dict[str, Any]:
        """Map step id to data for every successful result."""
        return {step_id: result.data for step_id, result in self.results.items() if result.success}

    def get_value(self, path: str) -> Any:
        """Get a value from a successful step result by dotted path.

        Args:
            path: Path like "plan.files" where the first part is a step id.

        Returns:
            The value at the path, or None when any part is missing.
        """
        step_id, *fields = path.split(".")
        result = self.get_result(step_id)
        if result is None or not result.success:
            return None

        value = result.data
        for key in fields:
            if isinstance(value, Mapping) and key in value:
                value = value[key]
            else:
                return None
        return value

    def elapsed(self) -> float:
        """Return seconds elapsed since the workflow started."""
        return (_now() - self.start_time).total_seconds()

    def prune(self, max_size: int) -> ExecutionContext:
        """Keep only the results of the most recently visited steps.

        Args:
            max_size: Maximum number of results to keep.

        Returns:
            This context if already within bounds, otherwise a new pruned one.
        """
        if len(self.results) <= max_size:
            return self

        kept: dict[str, StepResult] = {}
        for step_id in reversed(self.metadata.visited_steps):
            if len(kept) >= max_size:
                break
            if step_id not in kept and step_id in self.results:
                kept[step_id] = self.results[step_id]

        ordered = {step_id: kept[step_id] for step_id in self.results if step_id in kept}
        return replace(self, results=MappingProxyType(ordered))

    def serialize(self) -> dict[str, Any]:
        """Convert the context to a JSON-friendly dict for logging and traces."""
        results: dict[str, Any] = {}
        for step_id, result in self.results.items():
            results[step_id] = {
                "success": result.success,
                "data": _jsonable(result.data),
                "error": result.error_message,
                "duration": result.duration,
                "retries": result.retries,
            }

        return {
            "workflow_id": self.workflow_id,
            "start_time": self.start_time.isoformat(),
            "input": _jsonable(self.input),
            "results": results,
            "metadata": {
                "current_step": self.metadata.current_step,
                "visited_steps": list(self.metadata.visited_steps),
                "iteration_count": self.metadata.iteration_count,
                "error_count": self.metadata.error_count,
            },
        }

    def stats(self) -> dict[str, Any]:
        """Return summary statistics for the run so far."""
        total = len(self.results)
        successful = sum(1 for r in self.results.values() if r.success)
        step_time = sum(r.duration for r in self.results.values())
        return {
            "total_steps": total,
            "successful_steps": successful,
            "failed_steps": total - successful,
            "total_duration": self.elapsed(),
            "average_step_duration": step_time / total if total else 0.0,
            "iteration_count": self.metadata.iteration_count,
            "error_count": self.metadata.error_count,
        }


def _jsonable(value: Any) -> Any:
    """Return value if JSON serializable, else its string representation."""
    try:
        json.dumps(value)
        return value
    except (TypeError, ValueError):
        return str(value)
