# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Agentflow - An async engine for running declarative agent workflows.

Agentflow sequences calls to named agents according to a graph of steps
defined in YAML or JSON. It supports agent, transform, condition, parallel
and approval steps, retries with exponential backoff, and safety guards
that bound runaway execution.

Example:
    Run a workflow from the command line::

        $ agentflow run workflow.yaml --executor my_agents:executor --input goal="ship"

    Or use the library programmatically::

        from agentflow.config.loader import load_workflow
        from agentflow.engine.workflow import WorkflowExecutor
        from agentflow.providers.base import CallableAgentExecutor

        workflow = load_workflow("workflow.yaml")
        agents = CallableAgentExecutor({"planner": plan, "coder": code})
        result = await WorkflowExecutor(workflow, agents).execute({"goal": "ship"})

Modules:
    config: Workflow document loading, schema and semantic validation.
    engine: Execution context, expressions, safety guards and the workflow loop.
    executor: Step executors, retry policy and template rendering.
    providers: Agent executor and agent resolver collaborators.
    gates: Approval prompts and workflow notifications.
    cli: Command-line interface commands.
    exceptions: Custom exception hierarchy.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
