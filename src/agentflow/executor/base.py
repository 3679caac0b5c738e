# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Step executor abstraction, retry policy and executor registry.

Every step type has a StepExecutor that knows how to run a step against
an execution context and how to pick the next step id from the result.
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from agentflow.engine.context import StepResult
from agentflow.exceptions import ConfigurationError, StepExecutionError

if TYPE_CHECKING:
    from agentflow.config.schema import WorkflowStep
    from agentflow.engine.context import ExecutionContext

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Return the current time in UTC."""
    return datetime.now(timezone.utc)


class RetryPolicy(BaseModel):
    """Exponential backoff configuration for retrying steps.

    Attributes:
        max_attempts: Total attempts used when a step does not set ``max_retries``.
        initial_delay: Delay before the second attempt, in seconds.
        backoff_multiplier: Factor applied to the delay after each attempt.
        max_delay: Upper bound on any single delay, in seconds.
        jitter: Maximum random jitter as a fraction of the delay (0.0 to 1.0).
    """

    max_attempts: int = Field(default=1, ge=1)
    initial_delay: float = Field(default=1.0, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1)
    max_delay: float = Field(default=30.0, ge=0)
    jitter: float = Field(default=0.0, ge=0, le=1)

    def calculate_delay(self, attempt: int, initial_delay: float | None = None) -> float:
        """Calculate the delay after a failed attempt.

        Args:
            attempt: The attempt that just failed (1-indexed).
            initial_delay: Optional override of the policy's initial delay.

        Returns:
            Delay in seconds before the next attempt.
        """
        base = self.initial_delay if initial_delay is None else initial_delay
        delay = min(base * (self.backoff_multiplier ** (attempt - 1)), self.max_delay)

        if self.jitter > 0 and delay > 0:
            delay += delay * self.jitter * random.random()

        return delay


class StepExecutor(ABC):
    """Abstract base class for step executors.

    Implementations must provide:
    - execute(): Run the step and return a StepResult
    - route(): Choose the next step id from the result

    Example:
        >>> class EchoExecutor(StepExecutor):
        ...     async def execute(self, step, context):
        ...         return StepResult.ok(step.id, context.input, utc_now())
        ...     def route(self, step, result, context):
        ...         return step.next
    """

    @abstractmethod
    async def execute(self, step: WorkflowStep, context: ExecutionContext) -> StepResult:
        """Execute a step against a context snapshot.

        Args:
            step: The step definition.
            context: The current execution context. Never mutated.

        Returns:
            The step's result. Runtime failures are returned as failed
            results rather than raised.

        Raises:
            ConfigurationError: If the step cannot run as defined.
        """
        ...

    @abstractmethod
    def route(
        self,
        step: WorkflowStep,
        result: StepResult,
        context: ExecutionContext,
    ) -> str | None:
        """Return the id of the next step, or None to terminate.

        Args:
            step: The step that just ran.
            result: Its result.
            context: The context after the result was recorded.
        """
        ...


class BaseStepExecutor(StepExecutor):
    """Step executor with default routing and retry support.

    Routing sends successful results to ``next`` and failed ones to
    ``on_error``. ``run_with_retry`` wraps a single attempt with the step's
    retry count, backoff and per-attempt timeout.
    """

    def __init__(self, retry_policy: RetryPolicy | None = None) -> None:
        self.retry_policy = retry_policy or RetryPolicy()

    def route(
        self,
        step: WorkflowStep,
        result: StepResult,
        context: ExecutionContext,
    ) -> str | None:
        return step.next if result.success else step.on_error

    async def run_with_retry(
        self,
        step: WorkflowStep,
        attempt_fn: Callable[[], Awaitable[Any]],
        timeout: float | None = None,
    ) -> StepResult:
        """Run an attempt function with retries and exponential backoff.

        Args:
            step: The step being executed, for its retry settings.
            attempt_fn: Zero-argument coroutine factory making one attempt.
            timeout: Per-attempt timeout in seconds. None means unbounded.

        Returns:
            A successful StepResult from the first attempt that returns, or a
            failed one wrapping the last error. ``retries`` records the number
            of attempts made.

        Raises:
            ConfigurationError: Propagated immediately, never retried.
        """
        start_time = utc_now()
        if "max_retries" in step.model_fields_set:
            max_attempts = step.max_retries
        else:
            max_attempts = self.retry_policy.max_attempts
        last_error: BaseException | None = None
        attempt = 0

        while attempt < max_attempts:
            attempt += 1
            try:
                if timeout is not None:
                    data = await asyncio.wait_for(attempt_fn(), timeout=timeout)
                else:
                    data = await attempt_fn()
                if attempt > 1:
                    logger.info(f"Step '{step.id}' succeeded on attempt {attempt}/{max_attempts}")
                return StepResult.ok(step.id, data, start_time, retries=attempt)
            except ConfigurationError:
                raise
            except asyncio.TimeoutError as e:
                last_error = StepExecutionError(
                    f"Step '{step.id}' timed out after {timeout:g}s",
                    suggestion="Increase the step 'timeout' or check the agent for hangs",
                    step_id=step.id,
                    retries=attempt,
                    cause=e,
                )
            except Exception as e:
                last_error = e

            if not getattr(last_error, "is_retryable", True):
                logger.debug(f"Step '{step.id}' failed with a non-retryable error, not retrying")
                break

            if attempt < max_attempts:
                delay = self.retry_policy.calculate_delay(attempt, step.retry_delay)
                logger.warning(
                    f"[Retry {attempt}/{max_attempts}] Step '{step.id}' failed with "
                    f"{type(last_error).__name__}: {last_error}. Retrying in {delay:.2f}s"
                )
                if delay > 0:
                    await asyncio.sleep(delay)

        error = last_error
        if not isinstance(error, StepExecutionError):
            error = StepExecutionError(
                f"Step '{step.id}' failed after {attempt} attempt(s): {last_error}",
                step_id=step.id,
                retries=attempt,
                cause=last_error,
            )
        return StepResult.failed(step.id, error, start_time, retries=attempt)


class ExecutorRegistry:
    """Maps step types to their executors.

    Example:
        >>> registry = ExecutorRegistry()
        >>> registry.register("transform", TransformStepExecutor())
        >>> registry.get("transform")
        <TransformStepExecutor ...>
    """

    def __init__(self) -> None:
        self._executors: dict[str, StepExecutor] = {}

    def register(self, step_type: str, executor: StepExecutor) -> None:
        """Register or replace the executor for a step type."""
        if step_type in self._executors:
            logger.debug(f"Replacing executor for step type '{step_type}'")
        self._executors[step_type] = executor

    def get(self, step_type: str) -> StepExecutor:
        """Get the executor for a step type.

        Raises:
            ConfigurationError: If no executor is registered for the type.
        """
        executor = self._executors.get(step_type)
        if executor is None:
            registered = ", ".join(sorted(self._executors)) or "none"
            raise ConfigurationError(
                f"No executor registered for step type '{step_type}' "
                f"(registered: {registered})",
            )
        return executor

    def types(self) -> list[str]:
        """Return the registered step types."""
        return sorted(self._executors)

    def __contains__(self, step_type: object) -> bool:
        return step_type in self._executors
