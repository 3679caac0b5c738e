# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""CLI module for Agentflow.

This module contains the Typer application and command implementations.
"""

from agentflow.cli.app import app

__all__ = ["app"]
