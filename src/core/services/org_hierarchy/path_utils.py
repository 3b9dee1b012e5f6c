"""
Path utilities for the organization hierarchy.

Provides functions for:
- Building id paths from root to organization
- Rendering materialized path strings for display
- Calculating depth
"""

from typing import List, Optional, Sequence


def build_path_ids(org_id: str, parent_path_ids: Optional[Sequence[str]] = None) -> List[str]:
    """
    Build array of path IDs from root to organization.

    Args:
        org_id: The organization's ID
        parent_path_ids: Parent's path_ids array (None for root)

    Returns:
        List of organization IDs from root to this organization

    Examples:
        >>> build_path_ids('acme', None)
        ['acme']
        >>> build_path_ids('acme-paris', ['acme'])
        ['acme', 'acme-paris']
    """
    if parent_path_ids is None:
        return [org_id]
    return list(parent_path_ids) + [org_id]


def build_path(path_ids: Sequence[str]) -> str:
    """
    Render a materialized path string from path IDs.

    Examples:
        >>> build_path(['acme'])
        '/acme'
        >>> build_path(['acme', 'acme-paris', 'acme-paris-nord'])
        '/acme/acme-paris/acme-paris-nord'
    """
    if not path_ids:
        return '/'
    return '/' + '/'.join(path_ids)


def calculate_depth(path_ids: Sequence[str]) -> int:
    """
    Calculate depth from path IDs (0 for a root).

    Examples:
        >>> calculate_depth(['acme'])
        0
        >>> calculate_depth(['acme', 'acme-paris', 'acme-paris-nord'])
        2
    """
    return max(len(path_ids) - 1, 0)
