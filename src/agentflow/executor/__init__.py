"""Step executors for Agentflow.

One executor per step type, plus the shared retry policy, registry and
Jinja2 template renderer.
"""

from agentflow.executor.agent import AgentStepExecutor
from agentflow.executor.approval import ApprovalStepExecutor
from agentflow.executor.base import (
    BaseStepExecutor,
    ExecutorRegistry,
    RetryPolicy,
    StepExecutor,
)
from agentflow.executor.condition import ConditionStepExecutor
from agentflow.executor.parallel import ParallelStepExecutor
from agentflow.executor.template import TemplateRenderer
from agentflow.executor.transform import TransformStepExecutor

__all__ = [
    "AgentStepExecutor",
    "ApprovalStepExecutor",
    "BaseStepExecutor",
    "ConditionStepExecutor",
    "ExecutorRegistry",
    "ParallelStepExecutor",
    "RetryPolicy",
    "StepExecutor",
    "TemplateRenderer",
    "TransformStepExecutor",
]
