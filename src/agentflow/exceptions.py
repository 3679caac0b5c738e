# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Exception hierarchy for Agentflow.

This module defines all custom exceptions used throughout the engine.
All exceptions inherit from AgentflowError and support optional suggestions
to help users resolve issues.

The taxonomy follows how the engine reacts to each error:

- ConfigurationError: invalid definitions, unknown step types, unresolved
  agents. Always fatal, never retried.
- StepExecutionError: a step failed at runtime. Offered to the step's
  ``on_error`` route first, fatal otherwise.
- GuardViolation: a safety bound was exceeded. Always fatal.
"""

from __future__ import annotations


class AgentflowError(Exception):
    """Base exception for all Agentflow errors.

    Supports optional file path, line number, and suggestion to help
    users understand what went wrong and how to fix it.

    Attributes:
        suggestion: Optional actionable advice for resolving the error.
        file_path: Optional path to the file where the error occurred.
        line_number: Optional line number where the error occurred.
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        file_path: str | None = None,
        line_number: int | None = None,
    ) -> None:
        """Initialize an AgentflowError.

        Args:
            message: The error message describing what went wrong.
            suggestion: Optional advice for resolving the error.
            file_path: Optional path to the file where the error occurred.
            line_number: Optional line number where the error occurred.
        """
        self.suggestion = suggestion
        self.file_path = file_path
        self.line_number = line_number
        super().__init__(message)

    @property
    def message(self) -> str:
        """Return the bare error message without location or suggestion."""
        return self.args[0] if self.args else ""

    def __str__(self) -> str:
        """Format the error message with location and suggestion."""
        msg = self.message

        if self.file_path or self.line_number:
            location_parts = []
            if self.file_path:
                location_parts.append(f"File: {self.file_path}")
            if self.line_number:
                location_parts.append(f"Line: {self.line_number}")
            location = ", ".join(location_parts)
            msg += f"\n\n📍 Location: {location}"

        if self.suggestion:
            msg += f"\n\n💡 Suggestion: {self.suggestion}"
        return msg

    @property
    def error_type(self) -> str:
        """Return the type name for display purposes."""
        return self.__class__.__name__


class ConfigurationError(AgentflowError):
    """Raised when a workflow definition or engine setup is invalid.

    This includes malformed documents, missing required step fields,
    dangling routing references, unknown step types, and agent names that
    no resolver knows about.

    Attributes:
        field_path: Optional path to the invalid field (e.g., 'steps.2.next').
        step_id: Optional id of the step the error belongs to.
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        file_path: str | None = None,
        line_number: int | None = None,
        field_path: str | None = None,
        step_id: str | None = None,
    ) -> None:
        """Initialize a ConfigurationError.

        Args:
            message: The error message describing what went wrong.
            suggestion: Optional advice for resolving the error.
            file_path: Optional path to the file where the error occurred.
            line_number: Optional line number where the error occurred.
            field_path: Optional path to the invalid configuration field.
            step_id: Optional id of the offending step.
        """
        self.field_path = field_path
        self.step_id = step_id

        if suggestion is None:
            suggestion = self._generate_suggestion(message, field_path)

        super().__init__(message, suggestion, file_path, line_number)

    def _generate_suggestion(self, message: str, field_path: str | None) -> str | None:
        """Generate helpful suggestions based on error message and field."""
        msg_lower = message.lower()

        if "non-existent" in msg_lower or "unknown step" in msg_lower:
            return (
                "Check that 'next', 'on_error', 'then', 'else', 'on_approve' and "
                "'on_reject' name top-level step ids, or omit them to terminate"
            )

        if "duplicate" in msg_lower:
            return "Step ids must be unique across the workflow, including nested steps"

        if "executor" in msg_lower and "step type" in msg_lower:
            return "Register an executor for this type with WorkflowExecutor.register_executor()"

        if "required" in msg_lower or "missing" in msg_lower:
            return f"Add the missing required field{' at ' + field_path if field_path else ''}"

        return None

    def __str__(self) -> str:
        """Format the error message with field path, location and suggestion."""
        msg = self.message

        if self.field_path:
            msg += f"\n\n📋 Field: {self.field_path}"

        if self.file_path or self.line_number:
            location_parts = []
            if self.file_path:
                location_parts.append(f"File: {self.file_path}")
            if self.line_number:
                location_parts.append(f"Line: {self.line_number}")
            location = ", ".join(location_parts)
            msg += f"\n\n📍 Location: {location}"

        if self.suggestion:
            msg += f"\n\n💡 Suggestion: {self.suggestion}"
        return msg


class ValidationError(AgentflowError):
    """Raised when data validation fails outside of workflow definitions.

    Used for malformed CLI inputs and values that do not match the
    structure the engine expects.
    """

    pass


class ExpressionError(AgentflowError):
    """Raised when a transform or condition expression cannot be evaluated.

    This includes syntax errors, unresolved paths, and use of constructs
    outside the restricted grammar.

    Attributes:
        expression: The expression that failed.
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        expression: str | None = None,
    ) -> None:
        """Initialize an ExpressionError.

        Args:
            message: The error message describing what went wrong.
            suggestion: Optional advice for resolving the error.
            expression: Optional expression source that failed.
        """
        self.expression = expression
        super().__init__(message, suggestion)


class TemplateError(AgentflowError):
    """Raised when Jinja2 rendering of an approval message fails."""

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        undefined_variable: str | None = None,
    ) -> None:
        """Initialize a TemplateError.

        Args:
            message: The error message describing what went wrong.
            suggestion: Optional advice for resolving the error.
            undefined_variable: Optional name of the undefined variable.
        """
        self.undefined_variable = undefined_variable

        if suggestion is None and undefined_variable:
            suggestion = (
                f"Variable '{undefined_variable}' is not defined. "
                "Available variables are 'input', 'context' and prior step ids"
            )

        super().__init__(message, suggestion)


class ExecutionError(AgentflowError):
    """Raised when workflow execution fails.

    Base class for execution-related errors.

    Attributes:
        step_id: Id of the step that was active when the error occurred.
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        step_id: str | None = None,
    ) -> None:
        """Initialize an ExecutionError.

        Args:
            message: The error message describing what went wrong.
            suggestion: Optional advice for resolving the error.
            step_id: Optional id of the step where the error occurred.
        """
        self.step_id = step_id
        super().__init__(message, suggestion)


class StepExecutionError(ExecutionError):
    """Raised (or recorded) when a single step fails.

    Attributes:
        retries: Number of attempts made before giving up.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        step_id: str | None = None,
        retries: int | None = None,
        cause: BaseException | None = None,
    ) -> None:
        """Initialize a StepExecutionError.

        Args:
            message: The error message describing what went wrong.
            suggestion: Optional advice for resolving the error.
            step_id: Optional id of the failing step.
            retries: Optional number of attempts made.
            cause: Optional underlying exception.
        """
        self.retries = retries
        self.cause = cause
        super().__init__(message, suggestion, step_id)


class AgentInvocationError(ExecutionError):
    """Raised by agent executors when an agent call fails.

    Hosts may raise this from their AgentExecutor to control retry
    behavior. Any other exception type is treated as retryable.
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        agent_name: str | None = None,
        is_retryable: bool = True,
    ) -> None:
        """Initialize an AgentInvocationError.

        Args:
            message: The error message describing what went wrong.
            suggestion: Optional advice for resolving the error.
            agent_name: Optional name of the agent that failed.
            is_retryable: Whether the agent step may retry after this error.
        """
        self.agent_name = agent_name
        self._is_retryable = is_retryable
        super().__init__(message, suggestion)

    @property
    def is_retryable(self) -> bool:
        """Return whether this error should trigger a retry."""
        return self._is_retryable


class ApprovalError(ExecutionError):
    """Raised when an approval prompt cannot be shown or answered."""

    pass


class GuardViolation(ExecutionError):
    """Raised when a safety guard aborts a workflow run.

    Attributes:
        guard: Name of the guard that tripped.
        limit: The configured bound.
        current: The observed value that exceeded the bound.
        step_history: Recent visited steps, oldest first.
    """

    def __init__(
        self,
        message: str,
        *,
        guard: str,
        limit: float,
        current: float,
        step_id: str | None = None,
        step_history: list[str] | None = None,
        suggestion: str | None = None,
    ) -> None:
        """Initialize a GuardViolation.

        Args:
            message: The error message describing what went wrong.
            guard: Name of the guard that tripped.
            limit: The configured bound.
            current: The observed value.
            step_id: Optional id of the step about to run.
            step_history: Optional list of recently visited steps.
            suggestion: Optional advice for resolving the error.
        """
        self.guard = guard
        self.limit = limit
        self.current = current
        self.step_history = step_history or []
        super().__init__(message, suggestion, step_id)


class MaxIterationsError(GuardViolation):
    """Raised when a workflow exceeds its maximum iteration count."""

    def __init__(
        self,
        message: str,
        *,
        iterations: int,
        max_iterations: int,
        step_id: str | None = None,
        step_history: list[str] | None = None,
        suggestion: str | None = None,
    ) -> None:
        """Initialize a MaxIterationsError.

        Args:
            message: The error message describing what went wrong.
            iterations: The number of iterations already executed.
            max_iterations: The configured maximum number of iterations.
            step_id: Optional id of the step about to run.
            step_history: Optional list of recently visited steps.
            suggestion: Optional advice for resolving the error.
        """
        self.iterations = iterations
        self.max_iterations = max_iterations

        if suggestion is None:
            recent = (step_history or [])[-5:]
            if len(recent) >= 2 and len(set(recent)) <= 2:
                suggestion = (
                    f"Workflow appears to be looping between steps: "
                    f"{', '.join(sorted(set(recent)))}. Check routing so the loop can terminate"
                )
            else:
                suggestion = (
                    f"Increase max_iterations (currently {max_iterations}) "
                    "or check routing logic for infinite loops"
                )

        super().__init__(
            message,
            guard="iteration",
            limit=max_iterations,
            current=iterations,
            step_id=step_id,
            step_history=step_history,
            suggestion=suggestion,
        )


class WorkflowTimeoutError(GuardViolation):
    """Raised when a workflow runs longer than its maximum duration."""

    def __init__(
        self,
        message: str,
        *,
        elapsed_seconds: float,
        timeout_seconds: float,
        step_id: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        """Initialize a WorkflowTimeoutError.

        Args:
            message: The error message describing what went wrong.
            elapsed_seconds: Time elapsed since the workflow started.
            timeout_seconds: The configured maximum duration.
            step_id: Optional id of the step about to run.
            suggestion: Optional advice for resolving the error.
        """
        self.elapsed_seconds = elapsed_seconds
        self.timeout_seconds = timeout_seconds

        if suggestion is None:
            suggestion = f"Increase max_duration (currently {timeout_seconds:g}s)"
            if step_id:
                suggestion += f". The limit was reached before step '{step_id}'"

        super().__init__(
            message,
            guard="duration",
            limit=timeout_seconds,
            current=elapsed_seconds,
            step_id=step_id,
            suggestion=suggestion,
        )


class MaxErrorsError(GuardViolation):
    """Raised when a workflow accumulates too many failed steps."""

    def __init__(
        self,
        message: str,
        *,
        errors: int,
        max_errors: int,
        step_id: str | None = None,
        suggestion: str | None = None,
    ) -> None:
        """Initialize a MaxErrorsError.

        Args:
            message: The error message describing what went wrong.
            errors: Number of failed steps so far.
            max_errors: The configured maximum.
            step_id: Optional id of the step about to run.
            suggestion: Optional advice for resolving the error.
        """
        self.errors = errors
        self.max_errors = max_errors
        super().__init__(
            message,
            guard="error",
            limit=max_errors,
            current=errors,
            step_id=step_id,
            suggestion=suggestion
            or "Inspect failed step results; error handlers may be routing back into failing steps",
        )


class CycleDetectedError(GuardViolation):
    """Raised when routing keeps revisiting the same step without progress."""

    def __init__(
        self,
        message: str,
        *,
        occurrences: int,
        max_repeats: int,
        window: int,
        step_id: str | None = None,
        step_history: list[str] | None = None,
        suggestion: str | None = None,
    ) -> None:
        """Initialize a CycleDetectedError.

        Args:
            message: The error message describing what went wrong.
            occurrences: Times the step appeared in the inspected window.
            max_repeats: The configured bound.
            window: Number of recent steps inspected.
            step_id: Optional id of the repeating step.
            step_history: Optional list of recently visited steps.
            suggestion: Optional advice for resolving the error.
        """
        self.occurrences = occurrences
        self.window = window
        super().__init__(
            message,
            guard="cycle",
            limit=max_repeats,
            current=occurrences,
            step_id=step_id,
            step_history=step_history,
            suggestion=suggestion
            or "Check condition and error routes that lead back to this step",
        )
