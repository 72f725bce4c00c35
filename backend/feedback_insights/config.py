"""
Application configuration with environment variable support.
"""
from __future__ import annotations

from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


def split_csv(value: str, separator: str = ",") -> List[str]:
    """Split a separated environment value into a list of trimmed entries."""
    return [item.strip() for item in (value or "").split(separator) if item.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(extra="ignore")

    # Feedback sources
    GITHUB_TOKEN: str = ""
    GITHUB_REPO: str = "MicrosoftDocs/msteams-docs"
    STACKOVERFLOW_KEY: str = ""
    STACKOVERFLOW_TAGS: str = "microsoft-teams,teams-apps,teams-development"
    DEFAULT_FETCH_LIMIT: int = 30

    # AI backends (Azure wins when its key is present)
    OPENAI_API_KEY: str = ""
    OPENAI_MODEL: str = "gpt-4"
    AZURE_OPENAI_KEY: str = ""
    AZURE_OPENAI_ENDPOINT: str = ""
    AZURE_OPENAI_DEPLOYMENT: str = "gpt-4"
    AZURE_OPENAI_API_VERSION: str = "2024-02-01"

    # Retry policy
    RETRY_ATTEMPTS: int = 3
    RETRY_DELAY_MS: int = 1000

    # Analysis results
    RESULT_STORE_SIZE: int = 100
    ANALYSES_VIEW_LIMIT: int = 10
    DEFAULT_ANALYZE_LIMIT: int = 5

    # Service
    CORS_ALLOW_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    PORT: int = 8000

    @property
    def stackoverflow_tags(self) -> List[str]:
        return split_csv(self.STACKOVERFLOW_TAGS)

    @property
    def cors_origins(self) -> List[str]:
        return split_csv(self.CORS_ALLOW_ORIGINS) or ["*"]

    @property
    def retry_delay_seconds(self) -> float:
        return max(0, self.RETRY_DELAY_MS) / 1000.0


# HTTP Client Configuration
USER_AGENT = "Community-Insights-API/1.0"
HTTP_HEADERS = {"User-Agent": USER_AGENT}
HTTP_TIMEOUT_SECONDS = 20.0

settings = Settings(_env_file=".env", _env_file_encoding="utf-8")
