"""
Pydantic models for organization-service payloads.

This module provides:
- The organization record as returned by the organization service
- Paginated list envelope
- Bulk change-parent request/response bodies
"""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# ============================================================================
# ORGANIZATION RECORDS
# ============================================================================

class OrganizationRecord(BaseModel):
    """
    Organization as returned by ``GET /organizations`` and ``GET /organizations/{id}``.

    Only the hierarchy fields are typed; every other field (plan, city,
    country, userCount, ...) is kept in ``model_extra`` as display payload.
    """
    id: str = Field(..., min_length=1)
    name: str = Field(default="")
    slug: Optional[str] = Field(default=None)
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    is_active: bool = Field(default=True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True, extra="allow", json_schema_extra={
        "example": {
            "id": "3f6c1a2e-0000-4000-8000-000000000001",
            "name": "Acme Paris",
            "slug": "acme-paris",
            "parentId": "3f6c1a2e-0000-4000-8000-000000000000",
            "isActive": True,
            "plan": "professional",
            "city": "Paris",
            "country": "FR",
        }
    })

    @field_validator("parent_id", mode="before")
    @classmethod
    def empty_parent_is_root(cls, v: Any) -> Optional[str]:
        """The organization service stores an absent parent as '' in some rows."""
        if v == "":
            return None
        return v

    @property
    def attributes(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class PageMeta(BaseModel):
    page: int = 1
    limit: int = 0
    total: int = 0
    total_pages: int = Field(default=1, alias="totalPages")

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class OrganizationListResponse(BaseModel):
    """Paginated envelope; accepts both ``data`` and legacy ``organizations`` keys."""
    data: List[OrganizationRecord] = Field(
        default_factory=list,
        validation_alias=AliasChoices("data", "organizations"),
    )
    meta: Optional[PageMeta] = None

    model_config = ConfigDict(extra="ignore")


# ============================================================================
# BULK CHANGE PARENT
# ============================================================================

class ChangeParentRequest(BaseModel):
    """Body of ``POST /organizations/bulk/change-parent``."""
    organization_ids: List[str] = Field(..., min_length=1, alias="organizationIds")
    new_parent_id: Optional[str] = Field(default=None, alias="newParentId")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class ChangeParentError(BaseModel):
    id: str
    error: str = Field(default="Unknown error")


class ChangeParentResponse(BaseModel):
    updated: int = 0
    errors: List[ChangeParentError] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")
