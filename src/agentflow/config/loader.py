# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Workflow document loader with environment variable resolution.

This module handles loading YAML (or JSON) workflow definitions,
resolving environment variables, and parsing them into typed
Pydantic models.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from agentflow.config.schema import WorkflowDefinition
from agentflow.config.validator import validate_workflow
from agentflow.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Pattern to match ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")


def resolve_env_vars(value: str, max_depth: int = 10) -> str:
    """Resolve ${ENV:-default} patterns in strings.

    Supports recursive resolution where environment variable values
    may themselves contain environment variable references.

    Args:
        value: The string potentially containing env var references.
        max_depth: Maximum recursion depth to prevent infinite loops.

    Returns:
        The string with all environment variables resolved.

    Raises:
        ConfigurationError: If a required environment variable is missing
            (no default provided) or recursion limit is exceeded.
    """
    if max_depth <= 0:
        raise ConfigurationError(
            f"Maximum recursion depth exceeded while resolving environment variables in: {value}",
            suggestion="Check for circular references in your environment variables.",
        )

    def replace_env_var(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2)

        env_value = os.environ.get(var_name)

        if env_value is not None:
            return env_value
        elif default_value is not None:
            return default_value
        else:
            raise ConfigurationError(
                f"Required environment variable '{var_name}' is not set",
                suggestion=f"Set the environment variable '{var_name}' or provide a default "
                f"using the syntax ${{{var_name}:-default_value}}",
            )

    result = ENV_VAR_PATTERN.sub(replace_env_var, value)

    if ENV_VAR_PATTERN.search(result):
        return resolve_env_vars(result, max_depth - 1)

    return result


def _resolve_env_vars_recursive(data: Any) -> Any:
    """Recursively resolve environment variables in a data structure.

    Args:
        data: The data structure (dict, list, or scalar) to process.

    Returns:
        The data structure with all string values having env vars resolved.
    """
    if isinstance(data, dict):
        return {k: _resolve_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    else:
        return data


class WorkflowLoader:
    """Loads and validates workflow definitions from YAML or JSON documents.

    This class handles:
    - YAML parsing with line number tracking for error messages
    - Environment variable resolution
    - Pydantic schema validation
    - Semantic validation of step references
    """

    def __init__(self) -> None:
        """Initialize the loader with a safe ruamel.yaml parser."""
        self._yaml = YAML(typ="safe")

    def load(self, path: str | Path) -> WorkflowDefinition:
        """Load a workflow definition from a file.

        Args:
            path: Path to the YAML or JSON document.

        Returns:
            A validated WorkflowDefinition.

        Raises:
            ConfigurationError: If the file cannot be read, contains invalid
                syntax, or fails validation.
        """
        path = Path(path)

        if not path.exists():
            raise ConfigurationError(
                f"Workflow file not found: {path}",
                suggestion="Check that the file path is correct and the file exists.",
            )

        if not path.is_file():
            raise ConfigurationError(
                f"Path is not a file: {path}",
                suggestion="Provide a path to a YAML or JSON file, not a directory.",
            )

        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read workflow file '{path}': {e}",
                suggestion="Check file permissions and ensure the file is readable.",
            ) from e

        return self.load_string(content, source_path=path)

    def load_string(self, content: str, source_path: Path | None = None) -> WorkflowDefinition:
        """Load a workflow definition from a string.

        Args:
            content: The YAML or JSON content.
            source_path: Optional path for error messages.

        Returns:
            A validated WorkflowDefinition.

        Raises:
            ConfigurationError: If the content is invalid or fails validation.
        """
        source = str(source_path) if source_path else "<string>"

        try:
            data = self._yaml.load(content)
        except YAMLError as e:
            line_number = None
            line_info = ""
            mark = getattr(e, "problem_mark", None)
            if mark is not None:
                line_number = mark.line + 1
                line_info = f" at line {line_number}, column {mark.column + 1}"

            raise ConfigurationError(
                f"Invalid YAML syntax in '{source}'{line_info}: {e}",
                suggestion="Check the YAML syntax. Common issues include incorrect "
                "indentation, missing colons, or unquoted special characters.",
                file_path=str(source_path) if source_path else None,
                line_number=line_number,
            ) from e

        if data is None:
            raise ConfigurationError(
                f"Empty workflow document: {source}",
                suggestion="Add a workflow definition with 'id' and 'steps'.",
            )

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Invalid workflow format in '{source}': "
                f"expected a mapping, got {type(data).__name__}",
                suggestion="Ensure the document contains a workflow definition mapping.",
            )

        data = _resolve_env_vars_recursive(data)

        workflow = self._validate(data, source)
        for warning in validate_workflow(workflow):
            logger.warning(f"{source}: {warning}")
        return workflow

    def _validate(self, data: dict[str, Any], source: str) -> WorkflowDefinition:
        """Validate document data against the Pydantic schema.

        Args:
            data: The parsed and env-var-resolved document data.
            source: The source file path for error messages.

        Returns:
            A WorkflowDefinition.

        Raises:
            ConfigurationError: If the data fails schema validation.
        """
        try:
            return WorkflowDefinition.model_validate(data)
        except PydanticValidationError as e:
            formatted_errors: list[str] = []
            first_path: str | None = None
            for err in e.errors():
                loc = ".".join(str(x) for x in err.get("loc", ()))
                first_path = first_path or loc or None
                formatted_errors.append(f"  - {loc}: {err.get('msg', 'Unknown error')}")

            raise ConfigurationError(
                f"Workflow validation failed in '{source}':\n" + "\n".join(formatted_errors),
                suggestion="Check the workflow against the schema. Ensure every step has "
                "an 'id', a valid 'type', and the fields that type requires.",
                field_path=first_path,
            ) from e


def load_workflow(path: str | Path) -> WorkflowDefinition:
    """Convenience function to load a workflow definition.

    Args:
        path: Path to the YAML or JSON document.

    Returns:
        A validated WorkflowDefinition.

    Raises:
        ConfigurationError: If loading or validation fails.
    """
    return WorkflowLoader().load(path)


def load_workflow_string(content: str, source_path: Path | None = None) -> WorkflowDefinition:
    """Convenience function to load a workflow definition from a string.

    Args:
        content: The YAML or JSON content.
        source_path: Optional path for error messages.

    Returns:
        A validated WorkflowDefinition.

    Raises:
        ConfigurationError: If loading or validation fails.
    """
    return WorkflowLoader().load_string(content, source_path)
