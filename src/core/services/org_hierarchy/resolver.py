"""
Hierarchy Resolver

Root lookup, ancestor chains and nested tree construction over an
OrganizationSnapshot. Traversals use explicit work-lists and visited sets;
malformed data (cycles, dangling parent ids) raises instead of looping.
"""

import logging
from typing import Any, Callable, List, Optional

from src.core.exceptions import CycleDetectedError, DataIntegrityError
from src.core.services.org_hierarchy.models import OrganizationNode, OrganizationTreeNode
from src.core.services.org_hierarchy.path_utils import build_path_ids, calculate_depth
from src.core.services.org_hierarchy.snapshot import OrganizationSnapshot

logger = logging.getLogger(__name__)

SortKey = Callable[[OrganizationNode], Any]


def sort_by_name(node: OrganizationNode) -> Any:
    """Sibling ordering used by org charts: case-insensitive name, then id."""
    return (node.name.casefold(), node.id)


def _walk_to_root(snapshot: OrganizationSnapshot, org_id: str) -> List[OrganizationNode]:
    """Return [org, parent, ..., root]; strict about cycles and dangling parents."""
    node = snapshot.require(org_id)
    chain = [node]
    visited = {node.id}

    while node.parent_id is not None:
        parent = snapshot.get(node.parent_id)
        if parent is None:
            raise DataIntegrityError(
                f"Organization '{node.id}' references missing parent '{node.parent_id}'",
                context={"org_id": node.id, "missing_parent_id": node.parent_id},
            )
        if parent.id in visited:
            raise CycleDetectedError(org_id, context={"revisited_id": parent.id})
        visited.add(parent.id)
        chain.append(parent)
        node = parent

    return chain


def find_root(snapshot: OrganizationSnapshot, org_id: str) -> OrganizationNode:
    """
    Walk the parent chain upward from ``org_id`` to its root organization.

    Raises:
        NotFoundError: ``org_id`` is not in the snapshot
        CycleDetectedError: the parent chain revisits an organization
        DataIntegrityError: a parent id on the chain is not in the snapshot
    """
    return _walk_to_root(snapshot, org_id)[-1]


def get_ancestors(snapshot: OrganizationSnapshot, org_id: str) -> List[OrganizationNode]:
    """Ancestors of ``org_id`` ordered root first, ending with the direct parent."""
    chain = _walk_to_root(snapshot, org_id)
    return list(reversed(chain[1:]))


def get_path_ids(snapshot: OrganizationSnapshot, org_id: str) -> List[str]:
    """Organization ids from the root down to ``org_id`` inclusive."""
    return [node.id for node in reversed(_walk_to_root(snapshot, org_id))]


def get_depth(snapshot: OrganizationSnapshot, org_id: str) -> int:
    """Distance from the root organization (0 for a root)."""
    return calculate_depth(get_path_ids(snapshot, org_id))


def _ordered_children(
    snapshot: OrganizationSnapshot,
    parent_id: str,
    sort_key: Optional[SortKey],
) -> List[OrganizationNode]:
    children = [snapshot.get(child_id) for child_id in snapshot.children_of(parent_id)]
    if sort_key is not None:
        # sorted() is stable: ties keep snapshot order
        return sorted(children, key=sort_key)
    return children


def build_tree(
    snapshot: OrganizationSnapshot,
    root_id: str,
    sort_key: Optional[SortKey] = None,
) -> OrganizationTreeNode:
    """
    Build the nested tree below ``root_id``.

    The supplied root gets level 0 whether or not it is a root organization;
    each child is one level below its parent. Sibling order follows the
    snapshot unless ``sort_key`` is given.

    Raises:
        NotFoundError: ``root_id`` is not in the snapshot
        CycleDetectedError: an organization would be placed twice
    """
    root = snapshot.require(root_id)
    root_tree = OrganizationTreeNode.from_node(root, level=0, path_ids=build_path_ids(root.id))
    placed = {root.id}
    stack = [root_tree]

    while stack:
        parent_tree = stack.pop()
        for child in _ordered_children(snapshot, parent_tree.id, sort_key):
            if child.id in placed:
                raise CycleDetectedError(
                    child.id,
                    message=f"Organization '{child.id}' appears twice under root '{root_id}'",
                    context={"root_id": root_id, "parent_id": parent_tree.id},
                )
            placed.add(child.id)
            child_tree = OrganizationTreeNode.from_node(
                child,
                level=parent_tree.level + 1,
                path_ids=build_path_ids(child.id, parent_tree.path_ids),
            )
            parent_tree.children.append(child_tree)
            stack.append(child_tree)

    logger.debug(f"Built tree for root '{root_id}' with {len(placed)} organizations")
    return root_tree


def build_root_tree(
    snapshot: OrganizationSnapshot,
    org_id: str,
    sort_key: Optional[SortKey] = None,
) -> OrganizationTreeNode:
    """Org-chart view: the whole tree that ``org_id`` belongs to."""
    root = find_root(snapshot, org_id)
    return build_tree(snapshot, root.id, sort_key=sort_key)


def flatten_tree(tree: OrganizationTreeNode) -> List[OrganizationTreeNode]:
    """Pre-order list of every node in ``tree``."""
    flattened = []
    stack = [tree]
    while stack:
        node = stack.pop()
        flattened.append(node)
        stack.extend(reversed(node.children))
    return flattened


def build_forest(
    snapshot: OrganizationSnapshot,
    sort_key: Optional[SortKey] = None,
) -> List[OrganizationTreeNode]:
    """
    One tree per root organization.

    Every organization must be reachable from some root; an organization
    that is not (orphaned by a dangling parent id, or trapped in a cycle)
    raises the same errors as ``find_root``.
    """
    roots = snapshot.roots()
    if sort_key is not None:
        roots = sorted(roots, key=sort_key)

    forest = [build_tree(snapshot, root.id, sort_key=sort_key) for root in roots]

    reachable = {node.id for tree in forest for node in flatten_tree(tree)}
    if len(reachable) != len(snapshot):
        for node in snapshot:
            if node.id not in reachable:
                # Raises DataIntegrityError or CycleDetectedError for this node
                find_root(snapshot, node.id)
    return forest
