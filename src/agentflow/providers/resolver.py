"""Agent name resolution across prioritized sources.

Agents can be defined in several places, for example workflow-local
definitions and agents registered by the host. The resolver queries its
sources in priority order and returns the first match, so a local
definition overrides a host agent with the same name.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

LOCAL_SOURCE = "local"
HOST_SOURCE = "host"


@dataclass(frozen=True)
class ResolvedAgent:
    """An agent name resolved to the source that defines it."""

    name: str
    """The agent name."""

    source: str
    """Name of the source the agent was found in."""

    metadata: Mapping[str, Any] = field(default_factory=dict)
    """Source-specific details (description, model, ...)."""

    @property
    def description(self) -> str | None:
        """Return the agent description, if the source provides one."""
        return self.metadata.get("description")


@dataclass
class AgentSource:
    """A named collection of agents."""

    name: str
    agents: dict[str, Mapping[str, Any]] = field(default_factory=dict)

    def add(self, agent_name: str, metadata: Mapping[str, Any] | None = None) -> None:
        """Add or replace an agent in this source."""
        self.agents[agent_name] = dict(metadata or {})


class AgentResolver:
    """Resolves agent names against prioritized sources.

    Example:
        >>> resolver = AgentResolver.from_sources(
        ...     local={"planner": {"description": "Plans work"}},
        ...     host=["planner", "coder"],
        ... )
        >>> resolver.resolve("planner").source
        'local'
        >>> resolver.resolve("coder").source
        'host'
        >>> resolver.resolve("missing") is None
        True
    """

    def __init__(self, sources: Iterable[AgentSource] | None = None) -> None:
        """Initialize the resolver.

        Args:
            sources: Sources in priority order, highest first.
        """
        self._sources: list[AgentSource] = list(sources or [])

    @classmethod
    def from_sources(
        cls,
        local: Mapping[str, Mapping[str, Any]] | None = None,
        host: Iterable[str] | None = None,
    ) -> AgentResolver:
        """Build a resolver with local definitions ahead of host agents.

        Args:
            local: Locally defined agents, name -> metadata.
            host: Names of agents registered by the host.
        """
        resolver = cls()
        local_source = resolver.add_source(LOCAL_SOURCE)
        for name, metadata in (local or {}).items():
            local_source.add(name, metadata)
        host_source = resolver.add_source(HOST_SOURCE)
        for name in host or []:
            host_source.add(name, {"registered": True})
        return resolver

    def add_source(self, name: str, priority: int | None = None) -> AgentSource:
        """Add a source, or return the existing one with that name.

        Args:
            name: Source name.
            priority: Position in the lookup order (0 is highest).
                Appends at the lowest priority when None.

        Returns:
            The source, ready to have agents added.
        """
        for source in self._sources:
            if source.name == name:
                return source

        source = AgentSource(name)
        if priority is None:
            self._sources.append(source)
        else:
            self._sources.insert(priority, source)
        return source

    def register(self, source_name: str, agent_name: str, metadata: Mapping[str, Any] | None = None) -> None:
        """Register an agent in a named source, creating the source if needed."""
        self.add_source(source_name).add(agent_name, metadata)

    def resolve(self, agent_name: str) -> ResolvedAgent | None:
        """Resolve an agent name to the highest-priority source defining it.

        Returns:
            The resolved agent, or None if no source knows the name.
        """
        for source in self._sources:
            if agent_name in source.agents:
                return ResolvedAgent(
                    name=agent_name,
                    source=source.name,
                    metadata=source.agents[agent_name],
                )
        logger.debug(f"Agent '{agent_name}' not found in sources: {self.source_names()}")
        return None

    def has_agent(self, agent_name: str) -> bool:
        """Check if any source defines the agent."""
        return self.resolve(agent_name) is not None

    def all_agents(self) -> list[ResolvedAgent]:
        """Return every agent, each resolved to its winning source."""
        resolved: dict[str, ResolvedAgent] = {}
        for source in self._sources:
            for name, metadata in source.agents.items():
                if name not in resolved:
                    resolved[name] = ResolvedAgent(name=name, source=source.name, metadata=metadata)
        return list(resolved.values())

    def agents_by_source(self, source_name: str) -> list[ResolvedAgent]:
        """Return the agents whose winning source is ``source_name``."""
        return [agent for agent in self.all_agents() if agent.source == source_name]

    def agent_names(self) -> list[str]:
        """Return all agent names, sorted."""
        return sorted({name for source in self._sources for name in source.agents})

    def source_names(self) -> list[str]:
        """Return source names in priority order."""
        return [source.name for source in self._sources]
