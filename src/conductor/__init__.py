# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Conductor - workspaces, integrations and bindings for workflow runs.

Conductor keeps named, credentialed integrations (GitHub, Slack, ...) in
per-user workspaces, encrypts their credentials at rest, and binds a
workflow's ``requires.integrations`` to concrete integrations at run time.

Example:
    Bind a workflow's requirements programmatically::

        from conductor.config.loader import load_workflow
        from conductor.workspace import BindingResolver, WorkspaceStore

        workflow = load_workflow("workflow.yaml")
        with WorkspaceStore.open() as store:
            bindings = BindingResolver(store).resolve(
                "default", workflow.integration_requirements()
            )

Modules:
    workspace: Crypto core, workspace store, audit log and binding resolver.
    client: HTTP client for the controller daemon.
    completion: Dynamic shell completion sources.
    config: Paths, settings files and workflow loading.
    cli: Command-line interface commands.
    exceptions: Custom exception hierarchy.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
