# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Agent step executor.

Builds the agent payload from the execution context, calls the injected
AgentExecutor and retries failed attempts with exponential backoff.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any

from agentflow.exceptions import ConfigurationError
from agentflow.executor.base import BaseStepExecutor, RetryPolicy

if TYPE_CHECKING:
    from agentflow.config.schema import WorkflowStep
    from agentflow.engine.context import ExecutionContext, StepResult
    from agentflow.providers.base import AgentExecutor
    from agentflow.providers.resolver import AgentResolver

logger = logging.getLogger(__name__)

DEFAULT_AGENT_TIMEOUT = 60.0

RESERVED_PAYLOAD_KEYS = frozenset({"input", "context"})


class AgentStepExecutor(BaseStepExecutor):
    """Executes agent steps through an AgentExecutor.

    The payload passed to the agent looks like::

        {
            "input": <original workflow input>,
            "context": {"plan": {...}, "review": {...}},
            "plan": {...},   # only when the step declares input: plan
        }

    Only successful results are included. The payload is deep-copied
    for every attempt, so an agent cannot alter data held by the context.

    Example:
        >>> executor = AgentStepExecutor(CallableAgentExecutor({"planner": plan_fn}))
        >>> result = await executor.execute(step, context)
        >>> result.retries
        1
    """

    def __init__(
        self,
        agent_executor: AgentExecutor,
        resolver: AgentResolver | None = None,
        retry_policy: RetryPolicy | None = None,
        default_timeout: float | None = DEFAULT_AGENT_TIMEOUT,
    ) -> None:
        """Initialize the AgentStepExecutor.

        Args:
            agent_executor: Performs the actual agent invocations.
            resolver: Optional resolver. When set, agent names it cannot
                resolve are configuration errors.
            retry_policy: Backoff settings. Attempts come from each step's
                ``max_retries``.
            default_timeout: Per-attempt timeout in seconds for steps that
                do not set ``timeout``. None disables it.
        """
        super().__init__(retry_policy)
        self.agent_executor = agent_executor
        self.resolver = resolver
        self.default_timeout = default_timeout

    async def execute(self, step: WorkflowStep, context: ExecutionContext) -> StepResult:
        if not step.agent:
            raise ConfigurationError(
                f"Agent step '{step.id}' is missing required field 'agent'",
                step_id=step.id,
            )

        if self.resolver is not None:
            resolved = self.resolver.resolve(step.agent)
            if resolved is None:
                raise ConfigurationError(
                    f"Agent step '{step.id}' references unknown agent '{step.agent}'",
                    suggestion=f"Available agents: {', '.join(self.resolver.agent_names()) or 'none'}",
                    step_id=step.id,
                )
            logger.debug(f"Resolved agent '{step.agent}' from source '{resolved.source}'")

        payload = self.build_payload(step, context)
        agent_name = step.agent

        async def attempt() -> Any:
            return await self.agent_executor.execute(agent_name, copy.deepcopy(payload))

        timeout = step.timeout if step.timeout is not None else self.default_timeout
        result = await self.run_with_retry(step, attempt, timeout=timeout)
        if result.success:
            logger.debug(f"Agent '{agent_name}' completed step '{step.id}' in {result.duration:.2f}s")
        else:
            logger.debug(f"Agent '{agent_name}' failed step '{step.id}': {result.error_message}")
        return result

    @staticmethod
    def build_payload(step: WorkflowStep, context: ExecutionContext) -> dict[str, Any]:
        """Build the agent input payload for a step.

        Args:
            step: The agent step.
            context: The current execution context.

        Returns:
            The payload dict (not yet copied).
        """
        payload: dict[str, Any] = {
            "input": context.input,
            "context": context.step_data(),
        }

        if step.input and step.input not in RESERVED_PAYLOAD_KEYS:
            referenced = context.get_result(step.input)
            if referenced is not None and referenced.success:
                payload[step.input] = referenced.data

        return payload
