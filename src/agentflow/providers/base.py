"""Abstract base class for agent executors.

This module defines the AgentExecutor ABC the engine calls to run an
agent, plus CallableAgentExecutor for hosting agents as plain Python
callables.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from agentflow.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

AgentCallable = Callable[[dict[str, Any]], Any]


class AgentExecutor(ABC):
    """Abstract base class for agent executors.

    Executors perform the actual work behind an agent name: a local
    function, a remote call or an LLM session. The engine only retries
    and times out around ``execute``.

    Example:
        >>> class EchoExecutor(AgentExecutor):
        ...     async def execute(self, agent_name, payload):
        ...         return {"agent": agent_name, "input": payload["input"]}
    """

    @abstractmethod
    async def execute(self, agent_name: str, payload: dict[str, Any]) -> Any:
        """Execute an agent and return its output.

        Args:
            agent_name: Name of the agent to invoke.
            payload: Input with ``input`` (the workflow input), ``context``
                (step id -> data) and, when the step declares ``input``, the
                referenced step's data under that step id.

        Returns:
            The agent's output, recorded as the step's data.

        Raises:
            AgentInvocationError: If the invocation fails. Set
                ``is_retryable=False`` to stop the step from retrying.
        """
        ...

    async def close(self) -> None:
        """Release executor resources. No-op by default."""
        return None


class CallableAgentExecutor(AgentExecutor):
    """Agent executor backed by named Python callables.

    Callables receive the payload and may be sync or async. Sync callables
    run in a worker thread so they do not block the event loop.

    Example:
        >>> executor = CallableAgentExecutor({"planner": lambda p: {"files": ["a.py"]}})
        >>> await executor.execute("planner", {"input": None, "context": {}})
        {'files': ['a.py']}
    """

    def __init__(self, agents: Mapping[str, AgentCallable] | None = None) -> None:
        self._agents: dict[str, AgentCallable] = dict(agents or {})

    def register(self, name: str, fn: AgentCallable) -> None:
        """Register or replace the callable for an agent name."""
        self._agents[name] = fn

    def names(self) -> list[str]:
        """Return the registered agent names."""
        return sorted(self._agents)

    def __contains__(self, name: object) -> bool:
        return name in self._agents

    async def execute(self, agent_name: str, payload: dict[str, Any]) -> Any:
        fn = self._agents.get(agent_name)
        if fn is None:
            raise ConfigurationError(
                f"Unknown agent '{agent_name}'",
                suggestion=f"Available agents: {', '.join(self.names()) or 'none'}",
            )

        logger.debug(f"Invoking agent '{agent_name}' with payload keys {sorted(payload)}")
        if inspect.iscoroutinefunction(fn):
            return await fn(payload)

        result = await asyncio.to_thread(fn, payload)
        if inspect.isawaitable(result):
            return await result
        return result
