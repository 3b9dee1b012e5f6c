"""
Reparent Validator

Pure decision functions for proposed parent changes. Nothing here mutates
the snapshot or talks to the organization service.
"""

import logging
from typing import Iterable, List, Optional

from src.core.exceptions import CycleDetectedError, DataIntegrityError, ErrorCode
from src.core.services.org_hierarchy.descendants import get_descendants, get_subtree_height
from src.core.services.org_hierarchy.models import OrganizationNode, ValidationResult
from src.core.services.org_hierarchy.resolver import get_depth
from src.core.services.org_hierarchy.snapshot import OrganizationSnapshot

logger = logging.getLogger(__name__)


def validate(
    snapshot: OrganizationSnapshot,
    org_id: str,
    new_parent_id: Optional[str],
    max_depth: Optional[int] = None,
) -> ValidationResult:
    """
    Decide whether ``org_id`` may move under ``new_parent_id`` (None = root).

    Rules are checked in order and the first failure wins:
    self parent, unknown organization, unknown parent, parent is a
    descendant (cycle), inactive parent, depth limit. A passing result
    reports ``unchanged`` when the parent is already ``new_parent_id``.

    The depth rule only runs when ``max_depth`` is set. A cycle or dangling
    parent above the new parent fails it with ``DATA_INTEGRITY`` instead of
    raising, so bulk callers still get one outcome per organization.
    """
    if new_parent_id == org_id:
        return _reject(org_id, new_parent_id, ErrorCode.SELF_PARENT, "Organization cannot be its own parent")

    node = snapshot.get(org_id)
    if node is None:
        return _reject(
            org_id, new_parent_id, ErrorCode.NOT_FOUND,
            f'Organization with id "{org_id}" not found',
            context={"missing_id": org_id},
        )

    if new_parent_id is not None:
        parent = snapshot.get(new_parent_id)
        if parent is None:
            return _reject(
                org_id, new_parent_id, ErrorCode.NOT_FOUND,
                f'Parent organization with id "{new_parent_id}" not found',
                context={"missing_id": new_parent_id},
            )

        if new_parent_id in get_descendants(snapshot, org_id):
            return _reject(
                org_id, new_parent_id, ErrorCode.CYCLE_DETECTED,
                "Cannot set parent: would create circular reference",
            )

        if not parent.is_active:
            return _reject(
                org_id, new_parent_id, ErrorCode.INACTIVE_PARENT,
                f'Parent organization "{new_parent_id}" is inactive',
            )

    if max_depth is not None:
        try:
            new_level = 0 if new_parent_id is None else get_depth(snapshot, new_parent_id) + 1
        except (CycleDetectedError, DataIntegrityError) as e:
            return _reject(
                org_id, new_parent_id, ErrorCode.DATA_INTEGRITY,
                "Cannot set parent: hierarchy data above the new parent is inconsistent",
                context={"cause": e.error_code.value, "inconsistent_org_id": e.context.get("org_id")},
            )
        deepest = new_level + get_subtree_height(snapshot, org_id)
        if deepest > max_depth:
            return _reject(
                org_id, new_parent_id, ErrorCode.MAX_DEPTH_EXCEEDED,
                f"Cannot set parent: hierarchy would reach depth {deepest} (maximum {max_depth})",
                context={"max_depth": max_depth, "resulting_depth": deepest},
            )

    return ValidationResult.ok(org_id, new_parent_id, unchanged=node.parent_id == new_parent_id)


def _reject(
    org_id: str,
    new_parent_id: Optional[str],
    error: ErrorCode,
    message: str,
    context: Optional[dict] = None,
) -> ValidationResult:
    logger.debug(
        f"Rejected parent change {org_id} -> {new_parent_id}: {error.value}",
        extra={"org_id": org_id, "new_parent_id": new_parent_id, "error_code": error.value},
    )
    return ValidationResult.fail(org_id, new_parent_id, error, message, context=context)


def list_parent_candidates(snapshot: OrganizationSnapshot, org_id: str) -> List[OrganizationNode]:
    """
    Organizations ``org_id`` may be moved under, in snapshot order.

    Excludes the organization itself, its descendants and inactive
    organizations.

    Raises:
        NotFoundError: ``org_id`` is not in the snapshot
    """
    snapshot.require(org_id)
    excluded = get_descendants(snapshot, org_id)
    excluded.add(org_id)
    return [node for node in snapshot if node.id not in excluded and node.is_active]


def list_bulk_parent_candidates(
    snapshot: OrganizationSnapshot,
    org_ids: Iterable[str],
    current_parent_id: Optional[str] = None,
) -> List[OrganizationNode]:
    """
    Common parent candidates for a multi-selection.

    Excludes every selected organization, every descendant of any selected
    organization, the shared current parent and inactive organizations.
    Unknown ids in the selection contribute nothing.
    """
    excluded = set()
    for org_id in org_ids:
        excluded.add(org_id)
        excluded.update(get_descendants(snapshot, org_id))
    if current_parent_id is not None:
        excluded.add(current_parent_id)
    return [node for node in snapshot if node.id not in excluded and node.is_active]
