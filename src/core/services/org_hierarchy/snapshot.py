"""
Organization Snapshot

Immutable, point-in-time collection of organization records used for one
resolve/validate/coordinate computation. Parent links are resolved by id
through the snapshot; nodes never hold references to each other.
"""

from dataclasses import replace
from datetime import datetime, timezone
from functools import cached_property
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from src.core.exceptions import DataIntegrityError, NotFoundError
from src.core.services.org_hierarchy.models import OrganizationNode


class OrganizationSnapshot:
    """Read-only id -> node collection with a lazily built children index."""

    def __init__(self, nodes: Iterable[OrganizationNode], fetched_at: Optional[datetime] = None):
        by_id: Dict[str, OrganizationNode] = {}
        for node in nodes:
            if node.id in by_id:
                raise DataIntegrityError(
                    f"Duplicate organization id '{node.id}' in snapshot",
                    context={"org_id": node.id},
                )
            by_id[node.id] = node

        self._nodes: Mapping[str, OrganizationNode] = MappingProxyType(by_id)
        self._order: Tuple[str, ...] = tuple(by_id)
        self.fetched_at = fetched_at or datetime.now(timezone.utc)

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, org_id: object) -> bool:
        return org_id in self._nodes

    def __iter__(self) -> Iterator[OrganizationNode]:
        for org_id in self._order:
            yield self._nodes[org_id]

    def __repr__(self) -> str:
        return f"OrganizationSnapshot(size={len(self)}, fetched_at={self.fetched_at.isoformat()})"

    @property
    def ids(self) -> Tuple[str, ...]:
        return self._order

    def get(self, org_id: Optional[str]) -> Optional[OrganizationNode]:
        if org_id is None:
            return None
        return self._nodes.get(org_id)

    def require(self, org_id: str) -> OrganizationNode:
        """Return the node or raise NotFoundError."""
        node = self._nodes.get(org_id)
        if node is None:
            raise NotFoundError(org_id)
        return node

    @cached_property
    def children_index(self) -> Mapping[Optional[str], Tuple[str, ...]]:
        """
        parent_id -> child ids, in snapshot order.

        Built once per snapshot (O(n)) and shared by every traversal in a
        batch. Roots are grouped under the ``None`` key.
        """
        grouped: Dict[Optional[str], List[str]] = {}
        for org_id in self._order:
            grouped.setdefault(self._nodes[org_id].parent_id, []).append(org_id)
        return MappingProxyType({parent: tuple(children) for parent, children in grouped.items()})

    def children_of(self, org_id: str) -> Tuple[str, ...]:
        return self.children_index.get(org_id, ())

    def roots(self) -> List[OrganizationNode]:
        return [self._nodes[org_id] for org_id in self.children_index.get(None, ())]

    def dangling_references(self) -> List[Tuple[str, str]]:
        """(child_id, missing_parent_id) pairs for parents absent from the snapshot."""
        return [
            (node.id, node.parent_id)
            for node in self
            if node.parent_id is not None and node.parent_id not in self._nodes
        ]

    def with_parent(self, org_id: str, new_parent_id: Optional[str]) -> "OrganizationSnapshot":
        """
        Return a new snapshot where ``org_id`` points at ``new_parent_id``.

        Used to preview a reparent locally; the current snapshot is left as is.
        """
        moved = replace(self.require(org_id), parent_id=new_parent_id)
        return OrganizationSnapshot(
            (moved if node.id == org_id else node for node in self),
            fetched_at=self.fetched_at,
        )
