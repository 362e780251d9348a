# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Core - registry resolution and selective install

Exports the resolver, the install planner and their data models.
"""

from .config import AGWConfig, load_config
from .exceptions import (
    AGWError,
    DownloadFailed,
    EmptySelection,
    InstallTargetError,
    RegistryError,
    RegistryMalformed,
    RegistryUnavailable,
    WriteFailed,
)
from .installer import InstallPlanner
from .models import (
    CategoryMeta,
    InstallResult,
    InstallStatus,
    Registry,
    SelectionRequest,
    WorkflowEntry,
    WorkflowItem,
)
from .registry import RegistryResolver, parse_registry

__all__ = [
    # Configuration
    "AGWConfig",
    "load_config",
    # Errors
    "AGWError",
    "RegistryError",
    "RegistryUnavailable",
    "RegistryMalformed",
    "EmptySelection",
    "InstallTargetError",
    "DownloadFailed",
    "WriteFailed",
    # Registry
    "RegistryResolver",
    "parse_registry",
    "Registry",
    "WorkflowEntry",
    "WorkflowItem",
    "CategoryMeta",
    # Install
    "InstallPlanner",
    "SelectionRequest",
    "InstallResult",
    "InstallStatus",
]
