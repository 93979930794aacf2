"""Settings for the Azure DevOps connection, read from the environment or .env."""
from __future__ import annotations

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="AZURE_DEVOPS_",
        env_file=".env",
        extra="ignore",
    )

    ORGANIZATION: str = ""
    PAT: str = ""  # Personal Access Token with Code (read) and Build (read)
    BASE_URL: str = "https://dev.azure.com"
    API_VERSION: str = "6.0"
    TIMEOUT_SECONDS: float = 30.0

    @field_validator("BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


@lru_cache
def get_settings() -> Settings:
    return Settings()
