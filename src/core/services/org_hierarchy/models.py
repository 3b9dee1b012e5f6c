"""
Organization Hierarchy Models

Data models shared by the resolver, validator and coordinator.
Nodes refer to their parent by id only; the snapshot owns every node.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from src.core.exceptions import (
    CycleDetectedError,
    DataIntegrityError,
    ErrorCode,
    HierarchyError,
    InactiveParentError,
    MaxDepthExceededError,
    NotFoundError,
    ReparentValidationError,
    SelfParentError,
)
from src.core.services.org_hierarchy.path_utils import build_path


@dataclass(frozen=True)
class OrganizationNode:
    """
    Core-relevant subset of an organization record.

    ``attributes`` is an opaque display payload (plan, city, country, user
    counts, ...) carried through untouched.
    """
    id: str
    parent_id: Optional[str] = None
    is_active: bool = True
    name: str = ""
    slug: Optional[str] = None
    attributes: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        if not isinstance(self.attributes, MappingProxyType):
            object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass
class OrganizationTreeNode:
    """Nested tree view of an organization; built fresh per resolution call."""
    id: str
    parent_id: Optional[str]
    is_active: bool
    name: str
    slug: Optional[str]
    attributes: Mapping[str, Any]
    level: int
    path_ids: List[str] = field(default_factory=list)
    children: List["OrganizationTreeNode"] = field(default_factory=list)

    @classmethod
    def from_node(cls, node: OrganizationNode, level: int, path_ids: List[str]) -> "OrganizationTreeNode":
        return cls(
            id=node.id,
            parent_id=node.parent_id,
            is_active=node.is_active,
            name=node.name,
            slug=node.slug,
            attributes=node.attributes,
            level=level,
            path_ids=path_ids,
        )

    def _own_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(self.attributes)
        data.update({
            "id": self.id,
            "parentId": self.parent_id,
            "isActive": self.is_active,
            "name": self.name,
            "slug": self.slug,
            "level": self.level,
            "path": build_path(self.path_ids),
            "pathIds": list(self.path_ids),
            "children": [],
        })
        return data

    def to_dict(self) -> Dict[str, Any]:
        """Render the subtree as nested camelCase dicts for tree renderers."""
        root = self._own_dict()
        stack = [(self, root)]
        while stack:
            node, rendered = stack.pop()
            for child in node.children:
                child_rendered = child._own_dict()
                rendered["children"].append(child_rendered)
                stack.append((child, child_rendered))
        return root


# ============================================
# Validation
# ============================================

@dataclass
class ValidationResult:
    """Outcome of a proposed parent change; never raised across the UI boundary."""
    org_id: str
    new_parent_id: Optional[str]
    valid: bool
    unchanged: bool = False
    error: Optional[ErrorCode] = None
    message: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, org_id: str, new_parent_id: Optional[str], unchanged: bool) -> "ValidationResult":
        return cls(org_id=org_id, new_parent_id=new_parent_id, valid=True, unchanged=unchanged)

    @classmethod
    def fail(
        cls,
        org_id: str,
        new_parent_id: Optional[str],
        error: ErrorCode,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> "ValidationResult":
        return cls(
            org_id=org_id,
            new_parent_id=new_parent_id,
            valid=False,
            error=error,
            message=message,
            context=context or {},
        )

    def to_exception(self) -> Optional[HierarchyError]:
        """Build the matching exception, for callers that prefer raising."""
        if self.valid:
            return None
        if self.error == ErrorCode.SELF_PARENT:
            return SelfParentError(self.org_id)
        if self.error == ErrorCode.NOT_FOUND:
            return NotFoundError(self.context.get("missing_id", self.org_id), message=self.message)
        if self.error == ErrorCode.CYCLE_DETECTED:
            return CycleDetectedError(
                self.org_id,
                message=self.message,
                context={"new_parent_id": self.new_parent_id},
            )
        if self.error == ErrorCode.INACTIVE_PARENT:
            return InactiveParentError(self.org_id, self.new_parent_id)
        if self.error == ErrorCode.MAX_DEPTH_EXCEEDED:
            return MaxDepthExceededError(self.org_id, self.new_parent_id, self.context.get("max_depth"))
        if self.error == ErrorCode.DATA_INTEGRITY:
            return DataIntegrityError(self.message, context={"org_id": self.org_id, **self.context})
        return ReparentValidationError(self.message or "Invalid parent change", self.error)

    def raise_for_error(self) -> None:
        exc = self.to_exception()
        if exc is not None:
            raise exc

    def to_dict(self) -> Dict[str, Any]:
        return {
            "organizationId": self.org_id,
            "newParentId": self.new_parent_id,
            "valid": self.valid,
            "unchanged": self.unchanged,
            "error": self.error.value if self.error else None,
            "message": self.message,
        }


# ============================================
# Reparent Results
# ============================================

class ReparentStatus(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass
class ReparentResult:
    """Outcome of one parent change (single call or one item of a bulk call)."""
    org_id: str
    new_parent_id: Optional[str]
    status: ReparentStatus
    previous_parent_id: Optional[str] = None
    error: Optional[ErrorCode] = None
    message: Optional[str] = None
    snapshot_stale: bool = False

    @property
    def succeeded(self) -> bool:
        return self.status != ReparentStatus.FAILED

    @property
    def unchanged(self) -> bool:
        return self.status == ReparentStatus.UNCHANGED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "organizationId": self.org_id,
            "newParentId": self.new_parent_id,
            "previousParentId": self.previous_parent_id,
            "status": self.status.value,
            "error": self.error.value if self.error else None,
            "message": self.message,
        }


@dataclass
class BulkResult:
    """Per-item report of a bulk parent change plus aggregate counts."""
    new_parent_id: Optional[str]
    items: List[ReparentResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.succeeded)

    @property
    def failed(self) -> int:
        return sum(1 for item in self.items if not item.succeeded)

    @property
    def updated(self) -> int:
        return sum(1 for item in self.items if item.status == ReparentStatus.UPDATED)

    @property
    def unchanged(self) -> int:
        return sum(1 for item in self.items if item.unchanged)

    @property
    def snapshot_stale(self) -> bool:
        return any(item.snapshot_stale for item in self.items)

    def outcome_for(self, org_id: str) -> Optional[ReparentResult]:
        for item in self.items:
            if item.org_id == org_id:
                return item
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "newParentId": self.new_parent_id,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "items": [item.to_dict() for item in self.items],
            "errors": [
                {"id": item.org_id, "error": item.message}
                for item in self.items
                if not item.succeeded
            ],
        }


@dataclass
class BulkPersistenceResponse:
    """What the organization service reports back for a bulk parent change."""
    updated: int = 0
    errors: Dict[str, str] = field(default_factory=dict)


@dataclass
class ChildPromotion:
    """Children to re-attach before ``org_id`` is deleted."""
    org_id: str
    new_parent_id: Optional[str]
    child_ids: List[str] = field(default_factory=list)

    @property
    def has_children(self) -> bool:
        return bool(self.child_ids)
