"""Application configuration."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service
    APP_NAME: str = "CRM Automation Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"  # development, staging, production, testing

    # Audit-log database
    DATABASE_URL: str = "sqlite+aiosqlite:///./automation.db"
    SQLALCHEMY_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # Workflow execution
    WORKFLOW_RUN_TIMEOUT: float = 0.0  # seconds, 0 disables
    EXECUTION_LOG_ENABLED: bool = True

    # Node handlers
    WEBHOOK_TIMEOUT: float = 30.0
    WEBHOOK_BLOCK_PRIVATE_NETWORKS: bool = True
    TEMPLATE_CACHE_TTL: int = 300

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"  # json or text

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def run_timeout(self) -> float | None:
        """Run timeout in seconds, or None when disabled."""
        return self.WORKFLOW_RUN_TIMEOUT if self.WORKFLOW_RUN_TIMEOUT > 0 else None

    class Config:
        """Pydantic config."""

        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings.

    Uses caching to ensure settings are loaded only once.

    Returns:
        Settings object with all configuration values
    """
    return Settings()
