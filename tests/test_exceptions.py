"""Test that the exceptions module works correctly."""

from agentflow.exceptions import (
    AgentflowError,
    AgentInvocationError,
    ApprovalError,
    ConfigurationError,
    CycleDetectedError,
    ExecutionError,
    ExpressionError,
    GuardViolation,
    MaxErrorsError,
    MaxIterationsError,
    StepExecutionError,
    TemplateError,
    ValidationError,
    WorkflowTimeoutError,
)


class TestAgentflowError:
    """Tests for the base AgentflowError class."""

    def test_basic_error_message(self) -> None:
        """Test that basic error message is preserved."""
        error = AgentflowError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"

    def test_error_with_suggestion(self) -> None:
        """Test that error message includes suggestion when provided."""
        error = AgentflowError("Something went wrong", suggestion="Try doing X instead")
        assert "💡 Suggestion: Try doing X instead" in str(error)
        assert error.message == "Something went wrong"

    def test_error_with_file_and_line(self) -> None:
        """Test that error includes both file path and line number."""
        error = AgentflowError("Invalid syntax", file_path="/path/to/workflow.yaml", line_number=42)
        assert "📍 Location: File: /path/to/workflow.yaml, Line: 42" in str(error)

    def test_error_type_property(self) -> None:
        """Test that error_type returns the class name."""
        assert StepExecutionError("x").error_type == "StepExecutionError"


class TestConfigurationError:
    """Tests for the ConfigurationError class."""

    def test_with_field_path(self) -> None:
        """Test that field path is shown."""
        error = ConfigurationError("Invalid value", field_path="steps.2.next", step_id="c")
        assert "📋 Field: steps.2.next" in str(error)
        assert error.step_id == "c"

    def test_auto_generates_route_suggestion(self) -> None:
        """Test suggestion for dangling routes."""
        error = ConfigurationError("Step 'a' field 'next' references non-existent step 'b'")
        assert "top-level step ids" in error.suggestion

    def test_auto_generates_executor_suggestion(self) -> None:
        """Test suggestion for missing executors."""
        error = ConfigurationError("No executor registered for step type 'agent'")
        assert "register_executor" in error.suggestion

    def test_custom_suggestion_overrides_auto(self) -> None:
        """Test that custom suggestion overrides auto-generated one."""
        error = ConfigurationError("Duplicate step id 'a'", suggestion="Rename it")
        assert error.suggestion == "Rename it"


class TestTaxonomy:
    """Tests for the error hierarchy."""

    def test_inheritance(self) -> None:
        """Test every error derives from AgentflowError."""
        for cls in (ConfigurationError, ValidationError, ExpressionError, TemplateError, ExecutionError):
            assert issubclass(cls, AgentflowError)
        for cls in (StepExecutionError, AgentInvocationError, ApprovalError, GuardViolation):
            assert issubclass(cls, ExecutionError)
        for cls in (MaxIterationsError, WorkflowTimeoutError, MaxErrorsError, CycleDetectedError):
            assert issubclass(cls, GuardViolation)

    def test_step_execution_error(self) -> None:
        """Test attributes of StepExecutionError."""
        cause = RuntimeError("boom")
        error = StepExecutionError("failed", step_id="build", retries=3, cause=cause)
        assert error.step_id == "build"
        assert error.retries == 3
        assert error.cause is cause

    def test_agent_invocation_retryable(self) -> None:
        """Test AgentInvocationError is retryable unless told otherwise."""
        assert AgentInvocationError("x").is_retryable is True
        assert AgentInvocationError("x", agent_name="coder", is_retryable=False).is_retryable is False

    def test_template_error_suggestion(self) -> None:
        """Test undefined variables produce a suggestion."""
        error = TemplateError("Undefined", undefined_variable="plan")
        assert "'plan'" in error.suggestion

    def test_expression_error(self) -> None:
        """Test the expression is kept."""
        assert ExpressionError("bad", expression="a >").expression == "a >"


class TestGuardViolations:
    """Tests for guard violation errors."""

    def test_max_iterations_attributes(self) -> None:
        """Test that attributes are set and the bound is named."""
        error = MaxIterationsError("too many", iterations=5, max_iterations=5, step_id="a")
        assert error.guard == "iteration"
        assert error.limit == 5
        assert error.current == 5
        assert "max_iterations (currently 5)" in error.suggestion

    def test_max_iterations_loop_suggestion(self) -> None:
        """Test a two-step loop is detected in the suggestion."""
        error = MaxIterationsError(
            "too many", iterations=4, max_iterations=4, step_history=["a", "b", "a", "b"]
        )
        assert "looping between steps: a, b" in error.suggestion

    def test_timeout_suggestion(self) -> None:
        """Test the timeout suggestion names the step about to run."""
        error = WorkflowTimeoutError("slow", elapsed_seconds=12.5, timeout_seconds=10, step_id="deploy")
        assert error.guard == "duration"
        assert "10s" in error.suggestion
        assert "'deploy'" in error.suggestion

    def test_errors_and_cycles(self) -> None:
        """Test error and cycle guard attributes."""
        errors = MaxErrorsError("too many errors", errors=3, max_errors=3)
        assert errors.guard == "error"
        assert errors.suggestion

        cycle = CycleDetectedError("cycle", occurrences=3, max_repeats=3, window=5, step_id="a")
        assert cycle.guard == "cycle"
        assert cycle.window == 5
        assert cycle.limit == 3
