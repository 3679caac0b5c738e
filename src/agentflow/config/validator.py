# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Cross-step validators for workflow definitions.

This module provides validation beyond what the Pydantic models check on
their own: duplicate ids, dangling routing references, input references,
and reachability.
"""

from __future__ import annotations

from collections import Counter, deque
from typing import TYPE_CHECKING

from agentflow.exceptions import ConfigurationError

if TYPE_CHECKING:
    from agentflow.config.schema import WorkflowDefinition, WorkflowStep

LONG_WORKFLOW_STEPS = 50


def validate_workflow(workflow: WorkflowDefinition) -> list[str]:
    """Perform semantic validation of a workflow definition.

    Args:
        workflow: The WorkflowDefinition to validate.

    Returns:
        A list of warning messages (non-fatal issues).

    Raises:
        ConfigurationError: If any validation errors are found.
    """
    errors: list[str] = []
    warnings: list[str] = []

    all_steps = workflow.iter_steps()
    all_ids = {step.id for step in all_steps}
    top_level_ids = {step.id for step in workflow.steps}

    duplicates = [step_id for step_id, count in Counter(s.id for s in all_steps).items() if count > 1]
    for step_id in sorted(duplicates):
        errors.append(f"Duplicate step id '{step_id}'")

    for step in workflow.steps:
        errors.extend(_validate_routes(step, top_level_ids))
        if step.input is not None and step.input not in all_ids:
            errors.append(
                f"Step '{step.id}' references non-existent input step '{step.input}'"
            )
        if step.type == "agent" and step.on_error is None:
            warnings.append(f"Agent step '{step.id}' has no error handler (on_error)")
        if step.steps:
            nested_errors, nested_warnings = _validate_nested(step, all_ids)
            errors.extend(nested_errors)
            warnings.extend(nested_warnings)

    if errors:
        raise ConfigurationError(
            f"Workflow '{workflow.id}' validation failed:\n  - " + "\n  - ".join(errors),
        )

    for step_id in _find_unreachable(workflow):
        warnings.append(f"Step '{step_id}' is unreachable and will never execute")

    if len(workflow.steps) > LONG_WORKFLOW_STEPS:
        warnings.append(
            f"Workflow has {len(workflow.steps)} steps. Consider breaking it into smaller workflows"
        )

    return warnings


def _validate_routes(step: WorkflowStep, top_level_ids: set[str]) -> list[str]:
    """Validate that all routing targets of a step exist.

    Args:
        step: The step whose routes are being validated.
        top_level_ids: Ids of steps the engine can route to.

    Returns:
        List of error messages.
    """
    errors: list[str] = []
    for field_name, target in step.routing_targets().items():
        if target not in top_level_ids:
            errors.append(
                f"Step '{step.id}' field '{field_name}' references non-existent step '{target}'"
            )
    return errors


def _validate_nested(
    group: WorkflowStep,
    all_ids: set[str],
) -> tuple[list[str], list[str]]:
    """Validate the nested steps of a parallel group.

    Nested steps are dispatched by their group, so their own routing
    fields are never followed.

    Args:
        group: The parallel step.
        all_ids: Ids of every step in the workflow.

    Returns:
        Tuple of (error messages, warning messages).
    """
    errors: list[str] = []
    warnings: list[str] = []

    for nested in group.steps or []:
        if nested.type == "approval":
            warnings.append(
                f"Approval step '{nested.id}' inside parallel group '{group.id}' "
                "will prompt concurrently with its siblings"
            )
        if nested.routing_targets():
            warnings.append(
                f"Routing fields on nested step '{nested.id}' in parallel group "
                f"'{group.id}' are ignored"
            )
        if nested.input is not None and nested.input not in all_ids:
            errors.append(
                f"Step '{nested.id}' references non-existent input step '{nested.input}'"
            )
        if nested.steps:
            nested_errors, nested_warnings = _validate_nested(nested, all_ids)
            errors.extend(nested_errors)
            warnings.extend(nested_warnings)

    return errors, warnings


def _find_unreachable(workflow: WorkflowDefinition) -> list[str]:
    """Find top-level steps that cannot be reached from the entry step.

    Args:
        workflow: The workflow definition.

    Returns:
        Ids of unreachable steps, in declaration order.
    """
    reachable: set[str] = set()
    queue: deque[str] = deque([workflow.entry_step.id])

    while queue:
        current = queue.popleft()
        if current in reachable:
            continue
        reachable.add(current)

        step = workflow.find_step(current)
        if step is None:
            continue
        queue.extend(step.routing_targets().values())

    return [step.id for step in workflow.steps if step.id not in reachable]
