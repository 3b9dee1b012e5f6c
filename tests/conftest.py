"""
Shared fixtures for org-hierarchy tests.

Environment defaults are set before anything imports settings, so tests
never pick up a developer's .env or a real organization service.
"""

import os
from typing import Dict, Iterable, Optional

import pytest

# Set test environment BEFORE any imports that read settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ORG_SERVICE_URL", "http://org-service.test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from src.core.services.org_hierarchy.models import OrganizationNode  # noqa: E402
from src.core.services.org_hierarchy.provider import InMemoryOrganizationProvider  # noqa: E402
from src.core.services.org_hierarchy.snapshot import OrganizationSnapshot  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    """Clear lru_cache on settings between tests."""
    from src.app.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def build_snapshot(
    parents: Dict[str, Optional[str]],
    inactive: Iterable[str] = (),
    names: Optional[Dict[str, str]] = None,
) -> OrganizationSnapshot:
    """Snapshot from an ordered {org_id: parent_id} mapping."""
    inactive = set(inactive)
    names = names or {}
    return OrganizationSnapshot(
        OrganizationNode(
            id=org_id,
            parent_id=parent_id,
            is_active=org_id not in inactive,
            name=names.get(org_id, org_id),
        )
        for org_id, parent_id in parents.items()
    )


@pytest.fixture()
def make_snapshot():
    """Factory fixture: make_snapshot({"A": None, "B": "A"}, inactive={"B"})."""
    return build_snapshot


@pytest.fixture()
def chain_snapshot():
    """A <- B <- C."""
    return build_snapshot({"A": None, "B": "A", "C": "B"})


@pytest.fixture()
def org_forest():
    """
    Two active trees plus an inactive root.

    acme
    ├── acme-fr (France)
    │   ├── acme-paris (Paris)
    │   └── acme-lyon (Lyon)
    └── acme-de (Germany)
        └── acme-berlin (Berlin)
    globex
    └── globex-uk
    closed (inactive)
    """
    return build_snapshot(
        {
            "acme": None,
            "acme-fr": "acme",
            "acme-paris": "acme-fr",
            "acme-lyon": "acme-fr",
            "acme-de": "acme",
            "acme-berlin": "acme-de",
            "globex": None,
            "globex-uk": "globex",
            "closed": None,
        },
        inactive={"closed"},
        names={
            "acme": "Acme",
            "acme-fr": "France",
            "acme-paris": "Paris",
            "acme-lyon": "Lyon",
            "acme-de": "Germany",
            "acme-berlin": "Berlin",
            "globex": "Globex",
            "globex-uk": "Globex UK",
            "closed": "Closed Agency",
        },
    )


@pytest.fixture()
def cyclic_snapshot():
    """Root R with a detached D <-> E cycle injected by hand."""
    return build_snapshot({"R": None, "D": "E", "E": "D"})


@pytest.fixture()
def in_memory_provider(org_forest):
    return InMemoryOrganizationProvider(list(org_forest))
