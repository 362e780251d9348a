# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Registry and install data models.

The registry index is validated with pydantic; selection requests and
install results are plain dataclasses.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

DEFAULT_CATEGORY_EMOJI = "📁"


# =============================================================================
# Registry
# =============================================================================


class WorkflowEntry(BaseModel):
    """A single installable workflow as described by the registry"""

    description: str
    category: str
    tags: List[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return [] if v is None else v


class CategoryMeta(BaseModel):
    """Display metadata for a category key"""

    name: Optional[str] = None
    emoji: Optional[str] = None


class WorkflowItem(NamedTuple):
    """A registry entry together with its name"""

    name: str
    entry: WorkflowEntry


class Registry(BaseModel):
    """
    Parsed registry index.

    ``workflows`` keeps the key order of the JSON document; every read
    operation below iterates in that order.
    """

    workflows: Dict[str, WorkflowEntry]
    categories: Dict[str, CategoryMeta] = Field(default_factory=dict)

    @field_validator("categories", mode="before")
    @classmethod
    def none_as_empty(cls, v):
        return {} if v is None else v

    def __len__(self) -> int:
        return len(self.workflows)

    def names(self) -> List[str]:
        return list(self.workflows)

    def lookup(self, name: str) -> Optional[WorkflowEntry]:
        """Return the entry registered under ``name`` or None"""
        return self.workflows.get(name)

    def list_by_category(
        self, category: Optional[str] = None
    ) -> Dict[str, List[WorkflowItem]]:
        """
        Group workflows by category.

        Groups appear in order of their first member; members keep registry
        order. With ``category`` set only that group is produced, or an empty
        mapping when the category has no members.
        """
        groups: Dict[str, List[WorkflowItem]] = {}
        for name, entry in self.workflows.items():
            if category is not None and entry.category != category:
                continue
            groups.setdefault(entry.category, []).append(WorkflowItem(name, entry))
        return groups

    def search(self, query: str) -> List[WorkflowItem]:
        """
        Case-insensitive substring search over name, description and tags.

        Results keep registry order; there is no ranking.
        """
        q = query.lower()
        return [
            WorkflowItem(name, entry)
            for name, entry in self.workflows.items()
            if q in name.lower()
            or q in entry.description.lower()
            or any(q in tag.lower() for tag in entry.tags)
        ]

    def category_meta(self, category: str) -> CategoryMeta:
        """Display metadata for ``category`` with fallbacks filled in"""
        meta = self.categories.get(category) or CategoryMeta()
        return CategoryMeta(
            name=meta.name or category.upper(),
            emoji=meta.emoji or DEFAULT_CATEGORY_EMOJI,
        )


# =============================================================================
# Selection
# =============================================================================


@dataclass(frozen=True)
class SelectionRequest:
    """What the user asked to install"""

    explicit_names: Tuple[str, ...] = ()
    category_filter: Optional[str] = None
    all_flag: bool = False


# =============================================================================
# Install results
# =============================================================================


class InstallStatus(str, Enum):
    """Outcome of installing one workflow"""

    INSTALLED = "installed"
    OVERWRITTEN = "overwritten"
    NOT_FOUND = "not_found"
    DOWNLOAD_FAILED = "download_failed"
    WRITE_FAILED = "write_failed"


@dataclass(frozen=True)
class InstallResult:
    """Per-workflow install outcome"""

    name: str
    status: InstallStatus
    description: Optional[str] = None
    reason: Optional[str] = None
    path: Optional[Path] = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.status in (InstallStatus.INSTALLED, InstallStatus.OVERWRITTEN)

    @classmethod
    def installed(cls, name: str, description: str, path: Path) -> "InstallResult":
        return cls(name, InstallStatus.INSTALLED, description=description, path=path)

    @classmethod
    def overwritten(cls, name: str, description: str, path: Path) -> "InstallResult":
        return cls(name, InstallStatus.OVERWRITTEN, description=description, path=path)

    @classmethod
    def not_found(cls, name: str) -> "InstallResult":
        return cls(name, InstallStatus.NOT_FOUND)

    @classmethod
    def download_failed(cls, name: str, reason: str) -> "InstallResult":
        return cls(name, InstallStatus.DOWNLOAD_FAILED, reason=reason)

    @classmethod
    def write_failed(
        cls, name: str, reason: str, path: Optional[Path] = None
    ) -> "InstallResult":
        return cls(name, InstallStatus.WRITE_FAILED, reason=reason, path=path)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "name": self.name,
            "status": self.status.value,
            "description": self.description,
            "reason": self.reason,
            "path": str(self.path) if self.path else None,
        }
