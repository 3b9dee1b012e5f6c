"""
Reparent Coordinator

Applies single and bulk parent changes: validate against a snapshot, then
delegate persistence to the organization provider. Only the targeted
organization's parent edge changes; descendants keep their parents.

After any persistence attempt the caller's snapshot is stale and must be
refetched before further operations.
"""

import logging
from typing import Dict, List, Optional

from src.core.exceptions import ErrorCode, ProviderError
from src.core.services.org_hierarchy.models import (
    BulkPersistenceResponse,
    BulkResult,
    ChildPromotion,
    ReparentResult,
    ReparentStatus,
    ValidationResult,
)
from src.core.services.org_hierarchy.provider import OrganizationProvider
from src.core.services.org_hierarchy.snapshot import OrganizationSnapshot
from src.core.services.org_hierarchy.validator import validate

logger = logging.getLogger(__name__)


def _rejected(validation: ValidationResult, previous_parent_id: Optional[str]) -> ReparentResult:
    return ReparentResult(
        org_id=validation.org_id,
        new_parent_id=validation.new_parent_id,
        status=ReparentStatus.FAILED,
        previous_parent_id=previous_parent_id,
        error=validation.error,
        message=validation.message,
    )


def _unchanged(validation: ValidationResult, previous_parent_id: Optional[str]) -> ReparentResult:
    return ReparentResult(
        org_id=validation.org_id,
        new_parent_id=validation.new_parent_id,
        status=ReparentStatus.UNCHANGED,
        previous_parent_id=previous_parent_id,
    )


def _persistence_failed(
    org_id: str,
    new_parent_id: Optional[str],
    previous_parent_id: Optional[str],
    message: str,
) -> ReparentResult:
    return ReparentResult(
        org_id=org_id,
        new_parent_id=new_parent_id,
        status=ReparentStatus.FAILED,
        previous_parent_id=previous_parent_id,
        error=ErrorCode.PERSISTENCE_FAILED,
        message=message,
        snapshot_stale=True,
    )


def plan_child_promotion(snapshot: OrganizationSnapshot, org_id: str) -> ChildPromotion:
    """
    Deletion policy for an organization with children.

    Direct children move up to the deleted organization's parent, or become
    roots when it was a root. Grandchildren keep their parents.

    Raises:
        NotFoundError: ``org_id`` is not in the snapshot
    """
    node = snapshot.require(org_id)
    return ChildPromotion(
        org_id=org_id,
        new_parent_id=node.parent_id,
        child_ids=list(snapshot.children_of(org_id)),
    )


class ReparentCoordinator:
    """Validates and persists parent changes through an OrganizationProvider."""

    def __init__(self, provider: OrganizationProvider, max_depth: Optional[int] = None):
        self.provider = provider
        self.max_depth = max_depth

    async def change_parent(
        self,
        snapshot: OrganizationSnapshot,
        org_id: str,
        new_parent_id: Optional[str],
    ) -> ReparentResult:
        """Validate and persist one parent change; never raises for rejections."""
        current = snapshot.get(org_id)
        previous_parent_id = current.parent_id if current else None

        validation = validate(snapshot, org_id, new_parent_id, max_depth=self.max_depth)
        if not validation.valid:
            logger.info(
                f"Parent change {org_id} -> {new_parent_id} rejected: {validation.message}",
                extra={"org_id": org_id, "new_parent_id": new_parent_id, "error_code": validation.error.value},
            )
            return _rejected(validation, previous_parent_id)

        if validation.unchanged:
            logger.debug(f"Parent of {org_id} already {new_parent_id}, nothing to persist")
            return _unchanged(validation, previous_parent_id)

        try:
            persisted = await self.provider.update_organization_parent(org_id, new_parent_id)
        except ProviderError as e:
            logger.error(
                f"Failed to persist parent change {org_id} -> {new_parent_id}: {e.message}",
                extra={"org_id": org_id, "new_parent_id": new_parent_id, "error_code": e.error_code.value},
            )
            return _persistence_failed(org_id, new_parent_id, previous_parent_id, e.message)

        if not persisted:
            logger.warning(
                f"Organization service did not apply parent change {org_id} -> {new_parent_id}",
                extra={"org_id": org_id, "new_parent_id": new_parent_id},
            )
            return _persistence_failed(
                org_id, new_parent_id, previous_parent_id,
                "Organization service rejected the parent change",
            )

        logger.info(
            f"Moved organization {org_id} from {previous_parent_id} to {new_parent_id}",
            extra={"org_id": org_id, "new_parent_id": new_parent_id},
        )
        return ReparentResult(
            org_id=org_id,
            new_parent_id=new_parent_id,
            status=ReparentStatus.UPDATED,
            previous_parent_id=previous_parent_id,
            snapshot_stale=True,
        )

    async def change_parent_bulk(
        self,
        snapshot: OrganizationSnapshot,
        org_ids: List[str],
        new_parent_id: Optional[str],
    ) -> BulkResult:
        """
        Best-effort bulk parent change.

        Every id is validated independently against the same pre-image
        snapshot; earlier items of the batch never count as already moved.
        Valid, changed items are persisted in one provider call. The result
        always holds one outcome per distinct id, in request order.
        """
        outcomes: Dict[str, ReparentResult] = {}
        to_persist: List[str] = []

        for org_id in dict.fromkeys(org_ids):
            current = snapshot.get(org_id)
            previous_parent_id = current.parent_id if current else None
            validation = validate(snapshot, org_id, new_parent_id, max_depth=self.max_depth)

            if not validation.valid:
                outcomes[org_id] = _rejected(validation, previous_parent_id)
            elif validation.unchanged:
                outcomes[org_id] = _unchanged(validation, previous_parent_id)
            else:
                to_persist.append(org_id)

        if to_persist:
            outcomes.update(await self._persist_bulk(snapshot, to_persist, new_parent_id))

        result = BulkResult(
            new_parent_id=new_parent_id,
            items=[outcomes[org_id] for org_id in dict.fromkeys(org_ids)],
        )
        logger.info(
            f"Bulk parent change to {new_parent_id}: {result.updated} updated, "
            f"{result.unchanged} unchanged, {result.failed} failed"
        )
        return result

    async def _persist_bulk(
        self,
        snapshot: OrganizationSnapshot,
        org_ids: List[str],
        new_parent_id: Optional[str],
    ) -> Dict[str, ReparentResult]:
        try:
            response = await self.provider.bulk_change_parent(org_ids, new_parent_id)
        except ProviderError as e:
            logger.error(
                f"Bulk parent change to {new_parent_id} failed for {len(org_ids)} organizations: {e.message}",
                extra={"new_parent_id": new_parent_id, "error_code": e.error_code.value},
            )
            response = BulkPersistenceResponse(errors={org_id: e.message for org_id in org_ids})

        outcomes = {}
        for org_id in org_ids:
            previous_parent_id = snapshot.get(org_id).parent_id
            if org_id in response.errors:
                outcomes[org_id] = _persistence_failed(
                    org_id, new_parent_id, previous_parent_id, response.errors[org_id]
                )
            else:
                outcomes[org_id] = ReparentResult(
                    org_id=org_id,
                    new_parent_id=new_parent_id,
                    status=ReparentStatus.UPDATED,
                    previous_parent_id=previous_parent_id,
                    snapshot_stale=True,
                )
        return outcomes

    async def promote_children(self, snapshot: OrganizationSnapshot, org_id: str) -> BulkResult:
        """Re-attach the direct children of ``org_id`` to its parent ahead of deletion."""
        plan = plan_child_promotion(snapshot, org_id)
        if not plan.has_children:
            return BulkResult(new_parent_id=plan.new_parent_id)

        logger.info(
            f"Promoting {len(plan.child_ids)} children of {org_id} to {plan.new_parent_id}",
            extra={"org_id": org_id, "new_parent_id": plan.new_parent_id},
        )
        return await self.change_parent_bulk(snapshot, plan.child_ids, plan.new_parent_id)
