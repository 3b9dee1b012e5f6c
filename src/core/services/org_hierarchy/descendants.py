"""
Descendant Calculator

Transitive descendant lookups over an OrganizationSnapshot.

Unlike the resolver, these reads are tolerant: a cycle in the snapshot stops
expansion at already-visited organizations instead of raising, because the
validator relies on them to detect cycle risks in the first place.
"""

from collections import deque
from typing import List, Optional, Set

from src.core.services.org_hierarchy.models import OrganizationNode
from src.core.services.org_hierarchy.resolver import SortKey
from src.core.services.org_hierarchy.snapshot import OrganizationSnapshot


def _breadth_first(snapshot: OrganizationSnapshot, org_id: str) -> List[str]:
    """Descendant ids in breadth-first order, excluding ``org_id``; O(n)."""
    ordered: List[str] = []
    visited = {org_id}
    queue = deque(snapshot.children_of(org_id))

    while queue:
        current = queue.popleft()
        if current in visited:
            continue
        visited.add(current)
        ordered.append(current)
        queue.extend(child for child in snapshot.children_of(current) if child not in visited)

    return ordered


def get_descendants(snapshot: OrganizationSnapshot, org_id: str) -> Set[str]:
    """
    All organizations reachable through child links from ``org_id``.

    Never contains ``org_id`` itself. An id missing from the snapshot has no
    descendants.
    """
    return set(_breadth_first(snapshot, org_id))


def get_sub_organizations(
    snapshot: OrganizationSnapshot,
    org_id: str,
    sort_key: Optional[SortKey] = None,
) -> List[OrganizationNode]:
    """
    Descendant nodes of ``org_id``, breadth-first unless ``sort_key`` is given.

    Raises:
        NotFoundError: ``org_id`` is not in the snapshot
    """
    snapshot.require(org_id)
    nodes = [snapshot.get(child_id) for child_id in _breadth_first(snapshot, org_id)]
    if sort_key is not None:
        return sorted(nodes, key=sort_key)
    return nodes


def is_descendant(snapshot: OrganizationSnapshot, candidate_id: str, ancestor_id: str) -> bool:
    """True when ``candidate_id`` sits somewhere below ``ancestor_id``."""
    if candidate_id == ancestor_id:
        return False
    return candidate_id in get_descendants(snapshot, ancestor_id)


def get_subtree_height(snapshot: OrganizationSnapshot, org_id: str) -> int:
    """Number of levels below ``org_id`` (0 for a leaf); cycle tolerant."""
    height = 0
    visited = {org_id}
    frontier = [org_id]

    while frontier:
        next_frontier = []
        for current in frontier:
            for child in snapshot.children_of(current):
                if child not in visited:
                    visited.add(child)
                    next_frontier.append(child)
        if next_frontier:
            height += 1
        frontier = next_frontier

    return height
