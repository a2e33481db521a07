# Copyright (c) Microsoft Corporation.
# Licensed under the MIT License.

"""Example workflows shipped with Conductor."""
