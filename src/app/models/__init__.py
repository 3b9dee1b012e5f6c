"""
Pydantic models for the organization hierarchy service.
"""

from src.app.models.org_models import (
    ChangeParentError,
    ChangeParentRequest,
    ChangeParentResponse,
    OrganizationListResponse,
    OrganizationRecord,
    PageMeta,
)

__all__ = [
    "OrganizationRecord",
    "OrganizationListResponse",
    "PageMeta",
    "ChangeParentRequest",
    "ChangeParentError",
    "ChangeParentResponse",
]
