"""
Configuration for the organization hierarchy service.
Centralized settings with environment variable support.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")

    # Organization service (external persistence collaborator)
    org_service_url: str = Field(default="http://localhost:3001")
    org_service_api_key: Optional[str] = Field(default=None)
    org_service_timeout_seconds: float = Field(default=30.0, gt=0)
    org_service_connect_timeout_seconds: float = Field(default=10.0, gt=0)
    org_service_page_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Page size used when listing organizations for a snapshot"
    )
    org_service_max_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts for transient organization-service failures"
    )

    # Hierarchy rules
    hierarchy_max_depth: Optional[int] = Field(
        default=None,
        ge=0,
        description="Deepest allowed level (root = 0). None means unbounded."
    )

    @field_validator("org_service_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
