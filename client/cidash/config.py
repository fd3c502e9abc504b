"""
Application configuration
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "CI Dashboard Client"
    APP_VERSION: str = "1.0.0"

    # Backend
    API_BASE_URL: str = "http://localhost:8080"
    HTTP_TIMEOUT_SECONDS: float = 10.0

    # Client-local durable state (empty disables durable storage)
    STATE_FILE: Optional[str] = "~/.cidash/state.json"

    # Logging
    LOG_FORMAT: str = "text"
    LOG_LEVEL: str = "INFO"

    # Image builder workflow
    BRANCHES_PER_PAGE: int = 20
    COMMITS_PER_PAGE: int = 10
    COMMIT_SCROLL_THRESHOLD: int = 50
    DEFAULT_IMAGE_TAG: str = "latest"

    # Registry connectivity
    CONNECTION_TEST_TIMEOUT_SECONDS: float = 10.0

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
