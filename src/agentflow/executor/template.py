# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Jinja2-based template renderer for approval messages.

This module provides the TemplateRenderer class for rendering Jinja2
templates against a workflow's step data, including a JSON filter for
embedding prior results in prompts.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from jinja2 import BaseLoader, Environment, StrictUndefined, TemplateSyntaxError
from jinja2 import UndefinedError as Jinja2UndefinedError

from agentflow.exceptions import TemplateError

if TYPE_CHECKING:
    from agentflow.engine.context import ExecutionContext


def build_template_context(context: ExecutionContext) -> dict[str, Any]:
    """Build the variables available to templates.

    Step ids map to their data, ``context`` holds the same mapping, and
    ``input`` is the original workflow input. ``input`` and ``context``
    win over step ids with the same name.
    """
    step_data = context.step_data()
    variables: dict[str, Any] = {k: v for k, v in step_data.items() if k.isidentifier()}
    variables["context"] = step_data
    variables["input"] = context.input
    return variables


class TemplateRenderer:
    """Jinja2 renderer that fails fast on missing variables.

    Example:
        >>> renderer = TemplateRenderer()
        >>> renderer.render("Ship {{ plan.files | length }} files?", {"plan": {"files": ["a"]}})
        'Ship 1 files?'
    """

    def __init__(self) -> None:
        self.env = Environment(
            loader=BaseLoader(),
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )
        self.env.filters["json"] = self._json_filter

    @staticmethod
    def _json_filter(value: Any, indent: int = 2) -> str:
        """Serialize a value to a formatted JSON string."""
        return json.dumps(value, indent=indent, default=str)

    def render(self, template: str, variables: dict[str, Any]) -> str:
        """Render a template string.

        Args:
            template: Jinja2 template string.
            variables: Variables available in the template.

        Returns:
            Rendered string.

        Raises:
            TemplateError: If rendering fails due to missing variables or syntax errors.
        """
        try:
            return self.env.from_string(template).render(**variables)
        except Jinja2UndefinedError as e:
            raise TemplateError(
                f"Undefined variable in template: {e}",
                undefined_variable=self._extract_variable_name(str(e)),
            ) from e
        except TemplateSyntaxError as e:
            raise TemplateError(
                f"Template syntax error at line {e.lineno}: {e.message}",
                suggestion="Check template syntax for Jinja2 compatibility",
            ) from e
        except Exception as e:
            raise TemplateError(
                f"Template rendering failed: {e}",
                suggestion="Check the template and the step data it references",
            ) from e

    def render_for_context(self, template: str, context: ExecutionContext) -> str:
        """Render a template against an execution context's step data."""
        return self.render(template, build_template_context(context))

    @staticmethod
    def _extract_variable_name(error_msg: str) -> str:
        """Extract the variable name from a Jinja2 undefined error message."""
        # Messages look like "'name' is undefined" or "'dict object' has no attribute 'x'"
        parts = error_msg.split("'")
        if len(parts) >= 2:
            return parts[-2] if "has no attribute" in error_msg else parts[1]
        return "unknown"
