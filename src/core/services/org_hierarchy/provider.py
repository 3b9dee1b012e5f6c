"""
Organization Providers

Boundary to the external organization persistence collaborator. The core
only reads snapshots from a provider and hands validated parent changes
back to it.

- OrganizationProvider: async protocol every provider implements
- InMemoryOrganizationProvider: dict-backed, last-write-wins (local dev, tests)
- OrganizationServiceClient: httpx client for the organization service
"""

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Protocol

import httpx
from pydantic import ValidationError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.app.config import get_settings
from src.app.models.org_models import (
    ChangeParentRequest,
    ChangeParentResponse,
    OrganizationListResponse,
    OrganizationRecord,
)
from src.core.exceptions import PersistenceError, ProviderError
from src.core.services.org_hierarchy.models import BulkPersistenceResponse, OrganizationNode

logger = logging.getLogger(__name__)


class OrganizationProvider(Protocol):
    """Organization persistence collaborator consumed by the hierarchy core."""

    async def list_organizations(self) -> List[OrganizationNode]:
        ...

    async def get_organization_by_id(self, org_id: str) -> Optional[OrganizationNode]:
        ...

    async def update_organization_parent(self, org_id: str, new_parent_id: Optional[str]) -> bool:
        ...

    async def bulk_change_parent(
        self,
        org_ids: List[str],
        new_parent_id: Optional[str],
    ) -> BulkPersistenceResponse:
        ...


def record_to_node(record: OrganizationRecord) -> OrganizationNode:
    return OrganizationNode(
        id=record.id,
        parent_id=record.parent_id,
        is_active=record.is_active,
        name=record.name,
        slug=record.slug,
        attributes=record.attributes,
    )


# ==============================================================================
# In-memory provider
# ==============================================================================

class InMemoryOrganizationProvider:
    """
    Dict-backed provider. Performs no hierarchy checks of its own; writes are
    applied as given (last write wins), like a store without server-side
    validation.
    """

    def __init__(self, nodes: Iterable[OrganizationNode] = ()):
        self._nodes: Dict[str, OrganizationNode] = {node.id: node for node in nodes}

    async def list_organizations(self) -> List[OrganizationNode]:
        return list(self._nodes.values())

    async def get_organization_by_id(self, org_id: str) -> Optional[OrganizationNode]:
        return self._nodes.get(org_id)

    async def update_organization_parent(self, org_id: str, new_parent_id: Optional[str]) -> bool:
        node = self._nodes.get(org_id)
        if node is None:
            return False
        self._nodes[org_id] = replace(node, parent_id=new_parent_id)
        return True

    async def bulk_change_parent(
        self,
        org_ids: List[str],
        new_parent_id: Optional[str],
    ) -> BulkPersistenceResponse:
        response = BulkPersistenceResponse()
        for org_id in org_ids:
            if await self.update_organization_parent(org_id, new_parent_id):
                response.updated += 1
            else:
                response.errors[org_id] = f'Organization with id "{org_id}" not found'
        return response


# ==============================================================================
# HTTP client for the organization service
# ==============================================================================

class _TransientServiceError(Exception):
    """5xx from the organization service; retried."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


def _error_message(response: httpx.Response) -> str:
    """Extract the service's error message, falling back to the status line."""
    try:
        data = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.reason_phrase}"
    if not isinstance(data, dict):
        return f"HTTP {response.status_code}: {response.reason_phrase}"
    message = data.get("message") or data.get("error") or "An error occurred"
    if isinstance(message, list):
        message = "; ".join(str(m) for m in message)
    return str(message)


class OrganizationServiceClient:
    """
    Async client for the organization service REST API.

    Timeouts, connection errors and 5xx responses are retried with
    exponential backoff; anything still failing is raised as ProviderError
    (reads) or PersistenceError (writes).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        page_size: Optional[int] = None,
        max_retries: Optional[int] = None,
        retry_wait_seconds: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.org_service_url).rstrip("/")
        self.page_size = page_size or settings.org_service_page_size
        self.max_retries = max_retries or settings.org_service_max_retries
        self.retry_wait_seconds = retry_wait_seconds

        headers = {"Content-Type": "application/json"}
        token = api_key or settings.org_service_api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(
                timeout_seconds or settings.org_service_timeout_seconds,
                connect=settings.org_service_connect_timeout_seconds,
            ),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "OrganizationServiceClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request, retrying transient failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.retry_wait_seconds, max=8),
            retry=retry_if_exception_type((httpx.TransportError, _TransientServiceError)),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    if attempt.retry_state.attempt_number > 1:
                        logger.warning(
                            f"Retrying {method} {path} (attempt {attempt.retry_state.attempt_number}"
                            f"/{self.max_retries})"
                        )
                    response = await self._client.request(method, path, **kwargs)
                    if response.status_code >= 500:
                        raise _TransientServiceError(response)
                    return response
        except _TransientServiceError as e:
            raise ProviderError(
                f"Organization service error on {method} {path}: {_error_message(e.response)}",
                http_status=e.response.status_code,
                context={"method": method, "path": path},
                retryable=True,
                original_error=e,
            )
        except httpx.TransportError as e:
            raise ProviderError(
                f"Organization service unreachable on {method} {path}",
                context={"method": method, "path": path},
                retryable=True,
                original_error=e,
            )

    def _parse(self, model, response: httpx.Response, what: str):
        """Validate a JSON body against ``model``; ProviderError when it is not JSON or does not fit."""
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise ProviderError(f"Malformed {what} from organization service", original_error=e)

    async def list_organizations(self) -> List[OrganizationNode]:
        """Fetch every organization, following pagination."""
        nodes: List[OrganizationNode] = []
        page = 1

        while True:
            response = await self._request(
                "GET", "/organizations", params={"page": page, "limit": self.page_size}
            )
            if response.is_error:
                raise ProviderError(
                    f"Failed to list organizations: {_error_message(response)}",
                    http_status=response.status_code,
                    context={"page": page},
                )

            listing = self._parse(OrganizationListResponse, response, "organization list")
            nodes.extend(record_to_node(record) for record in listing.data)

            if not listing.data:
                break
            if listing.meta is not None:
                if page >= listing.meta.total_pages:
                    break
            elif len(listing.data) < self.page_size:
                break
            page += 1

        logger.info(f"Fetched {len(nodes)} organizations from organization service")
        return nodes

    async def get_organization_by_id(self, org_id: str) -> Optional[OrganizationNode]:
        response = await self._request("GET", f"/organizations/{org_id}")
        if response.status_code == 404:
            return None
        if response.is_error:
            raise ProviderError(
                f"Failed to fetch organization {org_id}: {_error_message(response)}",
                http_status=response.status_code,
                context={"org_id": org_id},
            )
        return record_to_node(self._parse(OrganizationRecord, response, "organization"))

    async def update_organization_parent(self, org_id: str, new_parent_id: Optional[str]) -> bool:
        """
        Persist a single parent change.

        Returns False when the service rejects the change (4xx); raises
        PersistenceError when the service cannot be reached.
        """
        try:
            response = await self._request(
                "PATCH", f"/organizations/{org_id}", json={"parentId": new_parent_id}
            )
        except ProviderError as e:
            raise PersistenceError(
                f"Could not persist parent change for {org_id}: {e.message}",
                context={"org_id": org_id, "new_parent_id": new_parent_id},
                retryable=e.retryable,
                original_error=e,
            )

        if response.is_error:
            logger.warning(
                f"Organization service rejected parent change {org_id} -> {new_parent_id}: "
                f"{_error_message(response)}",
                extra={"org_id": org_id, "new_parent_id": new_parent_id},
            )
            return False
        return True

    async def bulk_change_parent(
        self,
        org_ids: List[str],
        new_parent_id: Optional[str],
    ) -> BulkPersistenceResponse:
        body = ChangeParentRequest(organization_ids=org_ids, new_parent_id=new_parent_id)
        try:
            response = await self._request(
                "POST",
                "/organizations/bulk/change-parent",
                json=body.model_dump(by_alias=True),
            )
        except ProviderError as e:
            raise PersistenceError(
                f"Could not persist bulk parent change: {e.message}",
                context={"new_parent_id": new_parent_id, "count": len(org_ids)},
                retryable=e.retryable,
                original_error=e,
            )

        if response.is_error:
            raise PersistenceError(
                f"Bulk parent change rejected: {_error_message(response)}",
                context={"new_parent_id": new_parent_id, "count": len(org_ids)},
            )

        try:
            result = self._parse(ChangeParentResponse, response, "bulk change-parent response")
        except ProviderError as e:
            # the service may already have applied the batch
            raise PersistenceError(
                f"Bulk parent change outcome unknown: {e.message}",
                context={"new_parent_id": new_parent_id, "count": len(org_ids)},
                original_error=e,
            )
        return BulkPersistenceResponse(
            updated=result.updated,
            errors={error.id: error.error for error in result.errors},
        )
