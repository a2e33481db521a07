# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""CLI module for Conductor.

This module provides the command-line interface using Typer.
"""

from conductor.cli.app import app

__all__ = ["app"]