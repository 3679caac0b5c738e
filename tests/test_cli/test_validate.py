"""Tests for the validate command.

This module tests:
- Validation of valid workflow files
- Validation of invalid files (malformed YAML, schema errors, bad routes)
- Warning display
"""

from __future__ import annotations

from pathlib import Path

from rich.console import Console
from typer.testing import CliRunner

from agentflow.cli.app import app
from agentflow.cli.validate import validate_workflow_file

runner = CliRunner()


def write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "workflow.yaml"
    path.write_text(content)
    return path


class TestValidateCommand:
    """Tests for the validate command."""

    def test_validate_command_help(self) -> None:
        """Test that validate --help works."""
        result = runner.invoke(app, ["validate", "--help"])
        assert result.exit_code == 0
        assert "Validate a workflow file" in result.output

    def test_valid_workflow(self, tmp_workflow_file: Path) -> None:
        """Test validating a valid workflow file."""
        result = runner.invoke(app, ["validate", str(tmp_workflow_file)])

        assert result.exit_code == 0
        assert "Validation Successful" in result.output
        assert "test-workflow" in result.output
        assert "plan" in result.output
        assert "count" in result.output

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        """Test validating a file with malformed YAML."""
        path = write(tmp_path, "id: broken\nsteps:\n  - id: [unclosed\n")
        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "Validation Failed" in result.output
        assert "YAML" in result.output

    def test_bad_route(self, tmp_path: Path) -> None:
        """Test validating a file with a dangling route."""
        path = write(
            tmp_path,
            "id: bad\nsteps:\n  - id: a\n    type: transform\n    transform: '1'\n    next: ghost\n",
        )
        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "ghost" in result.output

    def test_schema_error(self, tmp_path: Path) -> None:
        """Test validating a file with an unknown step type."""
        path = write(tmp_path, "id: bad\nsteps:\n  - id: a\n    type: teleport\n")
        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 1
        assert "steps.0.type" in result.output

    def test_warnings_shown(self, tmp_path: Path) -> None:
        """Test non-fatal findings are printed after a successful validation."""
        path = write(tmp_path, "id: warned\nsteps:\n  - id: call\n    type: agent\n    agent: x\n")
        result = runner.invoke(app, ["validate", str(path)])

        assert result.exit_code == 0
        assert "no error handler" in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a nonexistent file is rejected."""
        result = runner.invoke(app, ["validate", str(tmp_path / "missing.yaml")])
        assert result.exit_code != 0


class TestValidateWorkflowFile:
    """Tests for the validate_workflow_file helper."""

    def test_returns_definition_and_warnings(self, tmp_path: Path) -> None:
        """Test a valid file returns its definition and warnings."""
        path = write(tmp_path, "id: warned\nsteps:\n  - id: call\n    type: agent\n    agent: x\n")

        is_valid, definition, warnings = validate_workflow_file(path, Console(quiet=True))

        assert is_valid is True
        assert definition.id == "warned"
        assert warnings == ["Agent step 'call' has no error handler (on_error)"]

    def test_invalid_file(self, tmp_path: Path) -> None:
        """Test an invalid file returns no definition."""
        path = write(tmp_path, "")

        assert validate_workflow_file(path, Console(quiet=True)) == (False, None, [])
