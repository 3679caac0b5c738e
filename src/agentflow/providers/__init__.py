# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Agent execution and resolution collaborators for Agentflow."""

from agentflow.providers.base import AgentExecutor, CallableAgentExecutor
from agentflow.providers.resolver import (
    HOST_SOURCE,
    LOCAL_SOURCE,
    AgentResolver,
    AgentSource,
    ResolvedAgent,
)

__all__ = [
    "AgentExecutor",
    "AgentResolver",
    "AgentSource",
    "CallableAgentExecutor",
    "HOST_SOURCE",
    "LOCAL_SOURCE",
    "ResolvedAgent",
]
