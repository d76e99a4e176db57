"""Configuration management for the Cloud Compliance Auditor.

Loads settings from environment variables and .env files using pydantic-settings.
Provides a cached singleton via get_config().
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AuditConfig(BaseSettings):
    """Application configuration sourced from environment variables."""

    arm_endpoint: str = Field("https://management.azure.com", alias="ARM_ENDPOINT")
    # Static override; when unset tokens come from DefaultAzureCredential
    arm_access_token: str | None = Field(None, alias="ARM_ACCESS_TOKEN")
    arm_token_scope: str = Field("https://management.azure.com/.default", alias="ARM_TOKEN_SCOPE")
    arm_timeout: int = Field(30, alias="ARM_TIMEOUT")
    arm_max_retries: int = Field(3, alias="ARM_MAX_RETRIES")
    arm_default_api_version: str = Field("2023-07-01", alias="ARM_DEFAULT_API_VERSION")
    scan_max_workers: int = Field(8, ge=1, alias="SCAN_MAX_WORKERS")
    scan_family_workers: int = Field(4, ge=1, alias="SCAN_FAMILY_WORKERS")
    catalogue_path: str | None = Field(None, alias="CATALOGUE_PATH")
    audit_storage_path: str = Field(".cloud-audit", alias="AUDIT_STORAGE_PATH")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_config() -> AuditConfig:
    """Return a cached singleton of AuditConfig."""
    return AuditConfig()
