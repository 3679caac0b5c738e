"""Configuration module for Agentflow.

This module handles workflow document parsing, Pydantic schema validation,
and environment variable resolution.
"""

from agentflow.config.loader import (
    WorkflowLoader,
    load_workflow,
    load_workflow_string,
    resolve_env_vars,
)
from agentflow.config.schema import StepType, WorkflowDefinition, WorkflowStep
from agentflow.config.validator import validate_workflow

__all__ = [
    # Loader
    "WorkflowLoader",
    "load_workflow",
    "load_workflow_string",
    "resolve_env_vars",
    # Schema models
    "StepType",
    "WorkflowDefinition",
    "WorkflowStep",
    # Validator
    "validate_workflow",
]
