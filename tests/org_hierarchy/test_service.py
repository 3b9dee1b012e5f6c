"""
Tests for OrganizationHierarchyService - snapshot loading and error mapping.
"""

import logging
from unittest.mock import AsyncMock

import pytest

from src.core.exceptions import (
    CycleDetectedError,
    DataIntegrityError,
    ErrorCode,
    HierarchyInconsistentError,
    NotFoundError,
)
from src.core.services.org_hierarchy import service as service_module
from src.core.services.org_hierarchy.models import OrganizationNode, ReparentStatus
from src.core.services.org_hierarchy.provider import (
    InMemoryOrganizationProvider,
    OrganizationServiceClient,
)
from src.core.services.org_hierarchy.service import (
    OrganizationHierarchyService,
    close_org_hierarchy_service,
    get_org_hierarchy_service,
)


@pytest.fixture()
def hierarchy_service(in_memory_provider):
    return OrganizationHierarchyService(provider=in_memory_provider)


@pytest.fixture()
def cyclic_service(cyclic_snapshot):
    return OrganizationHierarchyService(provider=InMemoryOrganizationProvider(list(cyclic_snapshot)))


class TestReads:
    @pytest.mark.asyncio
    async def test_get_tree_starts_at_root(self, hierarchy_service):
        tree = await hierarchy_service.get_tree("acme-lyon", sort_by_name=True)

        assert tree.id == "acme"
        assert [child.name for child in tree.children] == ["France", "Germany"]

    @pytest.mark.asyncio
    async def test_get_subtree(self, hierarchy_service):
        tree = await hierarchy_service.get_subtree("acme-fr")

        assert tree.id == "acme-fr"
        assert tree.level == 0

    @pytest.mark.asyncio
    async def test_get_forest(self, hierarchy_service):
        forest = await hierarchy_service.get_forest()
        assert [tree.id for tree in forest] == ["acme", "globex", "closed"]

    @pytest.mark.asyncio
    async def test_descendant_and_ancestor_lookups(self, hierarchy_service):
        assert await hierarchy_service.get_descendants("acme-de") == {"acme-berlin"}
        ancestors = await hierarchy_service.get_ancestors("acme-berlin")
        assert [node.id for node in ancestors] == ["acme", "acme-de"]
        subs = await hierarchy_service.get_sub_organizations("acme-fr", sort_by_name=True)
        assert [node.name for node in subs] == ["Lyon", "Paris"]

    @pytest.mark.asyncio
    async def test_parent_candidates(self, hierarchy_service):
        candidates = await hierarchy_service.get_parent_candidates("globex")
        assert "globex-uk" not in [node.id for node in candidates]
        bulk = await hierarchy_service.get_bulk_parent_candidates(["acme-paris"], current_parent_id="acme-fr")
        assert "acme-fr" not in [node.id for node in bulk]

    @pytest.mark.asyncio
    async def test_not_found_is_not_wrapped(self, hierarchy_service):
        with pytest.raises(NotFoundError):
            await hierarchy_service.get_tree("missing")

    @pytest.mark.asyncio
    async def test_passed_snapshot_skips_fetch(self, org_forest):
        provider = AsyncMock()
        hierarchy_service = OrganizationHierarchyService(provider=provider)

        tree = await hierarchy_service.get_subtree("acme-de", snapshot=org_forest)

        assert tree.id == "acme-de"
        provider.list_organizations.assert_not_awaited()


class TestInconsistentData:
    @pytest.mark.asyncio
    async def test_cycle_surfaces_as_hierarchy_inconsistent(self, cyclic_service):
        with pytest.raises(HierarchyInconsistentError) as exc_info:
            await cyclic_service.get_tree("D")

        exc = exc_info.value
        assert exc.message == "Hierarchy data inconsistent"
        assert exc.error_code == ErrorCode.HIERARCHY_INCONSISTENT
        assert isinstance(exc.original_error, CycleDetectedError)

    @pytest.mark.asyncio
    async def test_inconsistency_is_logged(self, cyclic_service, caplog):
        with caplog.at_level(logging.ERROR, logger=service_module.__name__):
            with pytest.raises(HierarchyInconsistentError):
                await cyclic_service.get_forest()

        assert any("Hierarchy data inconsistent" in record.getMessage() for record in caplog.records)

    @pytest.mark.asyncio
    async def test_descendants_tolerate_cycles(self, cyclic_service):
        assert await cyclic_service.get_descendants("D") == {"E"}

    @pytest.mark.asyncio
    async def test_validation_still_rejects_in_cyclic_snapshot(self, cyclic_service):
        result = await cyclic_service.validate_parent_change("R", "D")
        assert result.valid is True
        result = await cyclic_service.validate_parent_change("D", "E")
        assert result.error == ErrorCode.CYCLE_DETECTED

    @pytest.mark.asyncio
    async def test_duplicate_ids_from_provider(self):
        provider = AsyncMock()
        provider.list_organizations.return_value = [OrganizationNode(id="A"), OrganizationNode(id="A")]
        hierarchy_service = OrganizationHierarchyService(provider=provider)

        with pytest.raises(HierarchyInconsistentError) as exc_info:
            await hierarchy_service.load_snapshot()

        assert isinstance(exc_info.value.original_error, DataIntegrityError)

    @pytest.mark.asyncio
    async def test_dangling_parent_logged_on_load(self, caplog):
        provider = InMemoryOrganizationProvider([OrganizationNode(id="A"), OrganizationNode(id="B", parent_id="ghost")])
        hierarchy_service = OrganizationHierarchyService(provider=provider)

        with caplog.at_level(logging.WARNING, logger=service_module.__name__):
            snapshot = await hierarchy_service.load_snapshot()

        assert len(snapshot) == 2
        assert any("missing parents: B" in record.getMessage() for record in caplog.records)


class TestReparentOperations:
    @pytest.mark.asyncio
    async def test_change_parent_refetches_each_call(self, hierarchy_service):
        first = await hierarchy_service.change_parent("acme-berlin", "acme-fr")
        second = await hierarchy_service.change_parent("acme-berlin", "acme-fr")

        assert first.status == ReparentStatus.UPDATED
        assert second.status == ReparentStatus.UNCHANGED

    @pytest.mark.asyncio
    async def test_cycle_rejected(self, hierarchy_service):
        result = await hierarchy_service.change_parent("acme", "acme-paris")
        assert result.error == ErrorCode.CYCLE_DETECTED

    @pytest.mark.asyncio
    async def test_bulk(self, hierarchy_service):
        result = await hierarchy_service.change_parent_bulk(["acme-paris", "acme-lyon", "globex"], "acme-de")

        assert result.updated == 3
        tree = await hierarchy_service.get_subtree("acme-de")
        assert {child.id for child in tree.children} == {"acme-berlin", "acme-paris", "acme-lyon", "globex"}

    @pytest.mark.asyncio
    async def test_promote_children(self, hierarchy_service):
        result = await hierarchy_service.promote_children("acme-de")

        assert result.updated == 1
        assert (await hierarchy_service.get_ancestors("acme-berlin"))[-1].id == "acme"

    @pytest.mark.asyncio
    async def test_max_depth_from_settings(self, in_memory_provider, monkeypatch):
        monkeypatch.setenv("HIERARCHY_MAX_DEPTH", "2")
        hierarchy_service = OrganizationHierarchyService(provider=in_memory_provider)

        assert hierarchy_service.max_depth == 2
        result = await hierarchy_service.change_parent("globex", "acme-paris")
        assert result.error == ErrorCode.MAX_DEPTH_EXCEEDED


class TestServiceInstance:
    @pytest.mark.asyncio
    async def test_shared_instance_lifecycle(self):
        first = get_org_hierarchy_service()
        assert get_org_hierarchy_service() is first
        assert isinstance(first.provider, OrganizationServiceClient)

        await close_org_hierarchy_service()

        assert service_module._service_instance is None
