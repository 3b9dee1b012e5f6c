"""
Organization Hierarchy Service

Entry point for API/UI layers. Fetches a fresh snapshot from the
organization provider for every call (unless the caller passes one in),
runs the core hierarchy operations on it and maps malformed-data errors to
HierarchyInconsistentError.

Usage:
    from src.core.services.org_hierarchy import get_org_hierarchy_service

    service = get_org_hierarchy_service()
    tree = await service.get_tree(org_id, sort_by_name=True)
    result = await service.change_parent(org_id, new_parent_id)
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Set

from src.app.config import get_settings
from src.core.exceptions import CycleDetectedError, DataIntegrityError, HierarchyInconsistentError
from src.core.services.org_hierarchy.coordinator import ReparentCoordinator
from src.core.services.org_hierarchy.descendants import get_descendants, get_sub_organizations
from src.core.services.org_hierarchy.models import (
    BulkResult,
    OrganizationNode,
    OrganizationTreeNode,
    ReparentResult,
    ValidationResult,
)
from src.core.services.org_hierarchy.provider import OrganizationProvider, OrganizationServiceClient
from src.core.services.org_hierarchy.resolver import (
    build_forest,
    build_root_tree,
    build_tree,
    get_ancestors,
    sort_by_name as name_sort_key,
)
from src.core.services.org_hierarchy.snapshot import OrganizationSnapshot
from src.core.services.org_hierarchy.validator import (
    list_bulk_parent_candidates,
    list_parent_candidates,
    validate,
)

logger = logging.getLogger(__name__)


@contextmanager
def _consistent_hierarchy(operation: str) -> Iterator[None]:
    """Log malformed-data errors and surface them as HierarchyInconsistentError."""
    try:
        yield
    except (CycleDetectedError, DataIntegrityError) as e:
        logger.error(
            f"Hierarchy data inconsistent during {operation}: {e.message}",
            extra={"error_code": e.error_code.value, "org_id": e.context.get("org_id")},
        )
        raise HierarchyInconsistentError(e) from e


class OrganizationHierarchyService:
    """Hierarchy reads and reparent operations over provider snapshots."""

    def __init__(
        self,
        provider: Optional[OrganizationProvider] = None,
        max_depth: Optional[int] = None,
    ):
        settings = get_settings()
        self.provider = provider or OrganizationServiceClient()
        self.max_depth = max_depth if max_depth is not None else settings.hierarchy_max_depth
        self.coordinator = ReparentCoordinator(self.provider, max_depth=self.max_depth)

    async def load_snapshot(self) -> OrganizationSnapshot:
        """Fetch every organization and freeze them into a snapshot."""
        nodes = await self.provider.list_organizations()
        with _consistent_hierarchy("snapshot load"):
            snapshot = OrganizationSnapshot(nodes)

        dangling = snapshot.dangling_references()
        if dangling:
            logger.warning(
                f"Snapshot has {len(dangling)} organizations with missing parents: "
                f"{', '.join(child for child, _ in dangling[:10])}",
                extra={"snapshot_size": len(snapshot)},
            )
        return snapshot

    async def _snapshot(self, snapshot: Optional[OrganizationSnapshot]) -> OrganizationSnapshot:
        return snapshot if snapshot is not None else await self.load_snapshot()

    # ==========================================================================
    # Read Operations
    # ==========================================================================

    async def get_tree(
        self,
        org_id: str,
        sort_by_name: bool = False,
        snapshot: Optional[OrganizationSnapshot] = None,
    ) -> OrganizationTreeNode:
        """Whole tree ``org_id`` belongs to, starting at its root organization."""
        snapshot = await self._snapshot(snapshot)
        with _consistent_hierarchy("org chart build"):
            return build_root_tree(snapshot, org_id, sort_key=name_sort_key if sort_by_name else None)

    async def get_subtree(
        self,
        org_id: str,
        sort_by_name: bool = False,
        snapshot: Optional[OrganizationSnapshot] = None,
    ) -> OrganizationTreeNode:
        """Tree rooted at ``org_id`` itself (``org_id`` at level 0)."""
        snapshot = await self._snapshot(snapshot)
        with _consistent_hierarchy("subtree build"):
            return build_tree(snapshot, org_id, sort_key=name_sort_key if sort_by_name else None)

    async def get_forest(
        self,
        sort_by_name: bool = False,
        snapshot: Optional[OrganizationSnapshot] = None,
    ) -> List[OrganizationTreeNode]:
        snapshot = await self._snapshot(snapshot)
        with _consistent_hierarchy("forest build"):
            return build_forest(snapshot, sort_key=name_sort_key if sort_by_name else None)

    async def get_ancestors(
        self,
        org_id: str,
        snapshot: Optional[OrganizationSnapshot] = None,
    ) -> List[OrganizationNode]:
        snapshot = await self._snapshot(snapshot)
        with _consistent_hierarchy("ancestor lookup"):
            return get_ancestors(snapshot, org_id)

    async def get_descendants(
        self,
        org_id: str,
        snapshot: Optional[OrganizationSnapshot] = None,
    ) -> Set[str]:
        snapshot = await self._snapshot(snapshot)
        return get_descendants(snapshot, org_id)

    async def get_sub_organizations(
        self,
        org_id: str,
        sort_by_name: bool = False,
        snapshot: Optional[OrganizationSnapshot] = None,
    ) -> List[OrganizationNode]:
        snapshot = await self._snapshot(snapshot)
        return get_sub_organizations(snapshot, org_id, sort_key=name_sort_key if sort_by_name else None)

    async def get_parent_candidates(
        self,
        org_id: str,
        snapshot: Optional[OrganizationSnapshot] = None,
    ) -> List[OrganizationNode]:
        snapshot = await self._snapshot(snapshot)
        return list_parent_candidates(snapshot, org_id)

    async def get_bulk_parent_candidates(
        self,
        org_ids: List[str],
        current_parent_id: Optional[str] = None,
        snapshot: Optional[OrganizationSnapshot] = None,
    ) -> List[OrganizationNode]:
        snapshot = await self._snapshot(snapshot)
        return list_bulk_parent_candidates(snapshot, org_ids, current_parent_id=current_parent_id)

    # ==========================================================================
    # Reparent Operations
    # ==========================================================================

    async def validate_parent_change(
        self,
        org_id: str,
        new_parent_id: Optional[str],
        snapshot: Optional[OrganizationSnapshot] = None,
    ) -> ValidationResult:
        snapshot = await self._snapshot(snapshot)
        with _consistent_hierarchy("parent change validation"):
            return validate(snapshot, org_id, new_parent_id, max_depth=self.max_depth)

    async def change_parent(
        self,
        org_id: str,
        new_parent_id: Optional[str],
        snapshot: Optional[OrganizationSnapshot] = None,
    ) -> ReparentResult:
        snapshot = await self._snapshot(snapshot)
        with _consistent_hierarchy("parent change"):
            return await self.coordinator.change_parent(snapshot, org_id, new_parent_id)

    async def change_parent_bulk(
        self,
        org_ids: List[str],
        new_parent_id: Optional[str],
        snapshot: Optional[OrganizationSnapshot] = None,
    ) -> BulkResult:
        snapshot = await self._snapshot(snapshot)
        with _consistent_hierarchy("bulk parent change"):
            return await self.coordinator.change_parent_bulk(snapshot, org_ids, new_parent_id)

    async def promote_children(
        self,
        org_id: str,
        snapshot: Optional[OrganizationSnapshot] = None,
    ) -> BulkResult:
        """Move the children of ``org_id`` to its parent; run before deleting ``org_id``."""
        snapshot = await self._snapshot(snapshot)
        with _consistent_hierarchy("child promotion"):
            return await self.coordinator.promote_children(snapshot, org_id)


# ==============================================================================
# Service Instance
# ==============================================================================

_service_instance: Optional[OrganizationHierarchyService] = None


def get_org_hierarchy_service() -> OrganizationHierarchyService:
    """Get the shared hierarchy service backed by the organization service client."""
    global _service_instance
    if _service_instance is None:
        _service_instance = OrganizationHierarchyService()
        logger.info("Created organization hierarchy service")
    return _service_instance


async def close_org_hierarchy_service() -> None:
    """Close the shared service's HTTP client (application shutdown)."""
    global _service_instance
    if _service_instance is not None:
        provider = _service_instance.provider
        if isinstance(provider, OrganizationServiceClient):
            await provider.aclose()
        _service_instance = None
        logger.info("Closed organization hierarchy service")
