"""
Organization Hierarchy Service

Tree resolution, descendant lookups and cycle-safe reparenting for the
organization forest. Core operations are pure functions over an immutable
OrganizationSnapshot; persistence is delegated to an OrganizationProvider.

Usage:
    from src.core.services.org_hierarchy import get_org_hierarchy_service

    service = get_org_hierarchy_service()
    result = await service.change_parent_bulk(["org-b", "org-c"], "org-a")
"""

from src.core.services.org_hierarchy.coordinator import ReparentCoordinator, plan_child_promotion
from src.core.services.org_hierarchy.descendants import (
    get_descendants,
    get_sub_organizations,
    get_subtree_height,
    is_descendant,
)
from src.core.services.org_hierarchy.models import (
    BulkPersistenceResponse,
    BulkResult,
    ChildPromotion,
    OrganizationNode,
    OrganizationTreeNode,
    ReparentResult,
    ReparentStatus,
    ValidationResult,
)
from src.core.services.org_hierarchy.provider import (
    InMemoryOrganizationProvider,
    OrganizationProvider,
    OrganizationServiceClient,
)
from src.core.services.org_hierarchy.resolver import (
    build_forest,
    build_root_tree,
    build_tree,
    find_root,
    flatten_tree,
    get_ancestors,
    get_depth,
    get_path_ids,
    sort_by_name,
)
from src.core.services.org_hierarchy.service import (
    OrganizationHierarchyService,
    close_org_hierarchy_service,
    get_org_hierarchy_service,
)
from src.core.services.org_hierarchy.snapshot import OrganizationSnapshot
from src.core.services.org_hierarchy.validator import (
    list_bulk_parent_candidates,
    list_parent_candidates,
    validate,
)

__all__ = [
    # Types
    "OrganizationNode",
    "OrganizationTreeNode",
    "OrganizationSnapshot",
    "ValidationResult",
    "ReparentResult",
    "ReparentStatus",
    "BulkResult",
    "BulkPersistenceResponse",
    "ChildPromotion",
    # Resolver
    "find_root",
    "build_tree",
    "build_root_tree",
    "build_forest",
    "flatten_tree",
    "get_ancestors",
    "get_path_ids",
    "get_depth",
    "sort_by_name",
    # Descendants
    "get_descendants",
    "get_sub_organizations",
    "get_subtree_height",
    "is_descendant",
    # Validation
    "validate",
    "list_parent_candidates",
    "list_bulk_parent_candidates",
    # Coordination
    "ReparentCoordinator",
    "plan_child_promotion",
    # Providers
    "OrganizationProvider",
    "InMemoryOrganizationProvider",
    "OrganizationServiceClient",
    # Service
    "OrganizationHierarchyService",
    "get_org_hierarchy_service",
    "close_org_hierarchy_service",
]
