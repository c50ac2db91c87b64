"""
Configuration module for the Telehealth Admin Service.
Uses Pydantic BaseSettings for validation - app fails fast if required config is missing.
"""
import logging
from enum import Enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Roles an authenticated session can carry."""
    ADMIN = "admin"
    PROVIDER = "provider"
    STAFF = "staff"


class Settings(BaseSettings):
    """
    Application settings with validation.
    Required fields will cause the app to fail fast if not provided.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Document Store Configuration
    telehealth_svc_db_dir: str = Field(default="data", description="Database directory")
    telehealth_svc_db_file: str = Field(default="telehealth.db", description="Database filename")
    telehealth_svc_db_busy_timeout: int = Field(default=5000, description="SQLite busy timeout in milliseconds")

    # API Configuration
    telehealth_svc_host: str = Field(default="0.0.0.0", description="API host")
    telehealth_svc_port: int = Field(default=8000, description="API port")
    telehealth_svc_reload: bool = Field(default=False, description="Enable hot reload")

    # Logging Configuration
    telehealth_svc_log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Root log level"
    )
    telehealth_svc_log_format: Literal["json", "text"] = Field(default="json", description="Log line format")

    # Query Configuration
    telehealth_svc_default_page_size: int = Field(default=25, ge=1, description="Page size when none is requested")
    telehealth_svc_max_page_size: int = Field(default=100, ge=1, description="Largest page size a client may request")
    telehealth_svc_cache_ttl_seconds: float = Field(default=300.0, ge=0, description="Query cache staleness window")

    # Monitoring Configuration
    monitoring_flush_interval_seconds: float = Field(default=30.0, gt=0, description="Seconds between automatic flushes")
    monitoring_local_store_limit: int = Field(default=100, ge=1, description="Entries kept per local monitoring collection")
    monitoring_remote_url: Optional[str] = Field(default=None, description="Optional endpoint receiving flushed batches")
    monitoring_remote_timeout: float = Field(default=10.0, gt=0, description="Remote flush timeout in seconds")
    monitoring_rate_limit_window_seconds: float = Field(default=60.0, gt=0, description="Error rate-limit window")
    monitoring_rate_limit_max_events: int = Field(default=10, ge=1, description="Events allowed per key per window")

    # API Authentication Configuration
    telehealth_svc_api_key: str = Field(
        ...,  # Required - no default means fail fast if missing
        description="API key for authenticating requests to the Telehealth Admin Service",
        min_length=32,
    )
    telehealth_svc_api_user_id: str = Field(default="admin", description="Actor recorded for API key sessions")
    telehealth_svc_api_role: Role = Field(default=Role.ADMIN, description="Role granted to API key sessions")

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Warn about settings combinations that will surprise operators."""
        if self.telehealth_svc_default_page_size > self.telehealth_svc_max_page_size:
            logger.warning(
                "Default page size exceeds max page size - requests will be clamped",
                extra={
                    "default_page_size": self.telehealth_svc_default_page_size,
                    "max_page_size": self.telehealth_svc_max_page_size,
                }
            )
        if not self.monitoring_remote_url:
            logger.info("MONITORING_REMOTE_URL not set - monitoring batches are stored locally only")
        return self

    @property
    def database_path(self) -> str:
        """Get the full database path."""
        return str(Path(self.telehealth_svc_db_dir) / self.telehealth_svc_db_file)

    def ensure_directories(self) -> None:
        """Ensure required directories exist."""
        Path(self.telehealth_svc_db_dir).mkdir(parents=True, exist_ok=True)


# Create global settings instance - fails fast if required config is missing
settings = Settings()

# Ensure directories exist on import
settings.ensure_directories()

# Module-level exports used across the codebase
DATABASE_PATH = settings.database_path
DATABASE_BUSY_TIMEOUT = settings.telehealth_svc_db_busy_timeout

API_HOST = settings.telehealth_svc_host
API_PORT = settings.telehealth_svc_port
API_RELOAD = settings.telehealth_svc_reload

LOG_LEVEL = settings.telehealth_svc_log_level
LOG_JSON = settings.telehealth_svc_log_format == "json"

DEFAULT_PAGE_SIZE = settings.telehealth_svc_default_page_size
MAX_PAGE_SIZE = settings.telehealth_svc_max_page_size
CACHE_TTL_SECONDS = settings.telehealth_svc_cache_ttl_seconds

API_KEY = settings.telehealth_svc_api_key
API_USER_ID = settings.telehealth_svc_api_user_id
API_ROLE = settings.telehealth_svc_api_role
