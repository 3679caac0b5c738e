# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Workflow engine module for Agentflow.

This module contains the immutable execution context, the restricted
expression evaluator and the safety guards. The orchestration loop lives
in ``agentflow.engine.workflow``, which depends on the step executors.
"""

from agentflow.engine.context import ContextMetadata, ExecutionContext, StepResult
from agentflow.engine.expression import ExpressionEvaluator
from agentflow.engine.guards import (
    CycleGuard,
    DurationGuard,
    ErrorGuard,
    IterationGuard,
    SafetyGuard,
    default_guards,
)

__all__ = [
    "ContextMetadata",
    "CycleGuard",
    "DurationGuard",
    "ErrorGuard",
    "ExecutionContext",
    "ExpressionEvaluator",
    "IterationGuard",
    "SafetyGuard",
    "StepResult",
    "default_guards",
]
