"""Application configuration"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API
    API_PREFIX: str = "/api/v1"
    PROJECT_NAME: str = "Helpdesk API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Security
    # WHY: Tokens are issued by the auth service; this API only verifies them.
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 1440  # 24 hours

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./helpdesk.db"

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Blob storage (S3 compatible)
    S3_ENDPOINT: Optional[str] = None
    S3_ACCESS_KEY: Optional[str] = None
    S3_SECRET_KEY: Optional[str] = None
    S3_BUCKET: str = "helpdesk-attachments"
    S3_REGION: str = "us-east-1"
    S3_PUBLIC_URL: Optional[str] = None  # CDN or bucket website, e.g. https://cdn.example.com
    STORAGE_FOLDER: str = "helpdesk/tickets"
    TEMP_STORAGE_FOLDER: str = "helpdesk/tickets/temp"

    # Uploads
    MAX_UPLOAD_SIZE_BYTES: int = 5 * 1024 * 1024  # 5MB per image
    MAX_BATCH_UPLOAD_FILES: int = 10

    # Ticket lifecycle
    TICKET_CODE_PREFIX: str = "RES"
    TICKET_CODE_MAX_ATTEMPTS: int = 5
    RECENT_STATS_DAYS: int = 7
    # WHY: The dashboard asks agents for a closing note. API callers bypass
    # the dashboard, so the rule can be enforced here when enabled.
    REQUIRE_COMMENT_TO_CLOSE: bool = False

    @property
    def async_database_url(self) -> str:
        """Get async database URL"""
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

    @property
    def storage_public_url(self) -> str:
        """
        Base URL that stored objects are served from.

        WHY: Attachments are persisted as absolute URLs, and the storage key
        has to be recovered from them again for cleanup.
        """
        if self.S3_PUBLIC_URL:
            return self.S3_PUBLIC_URL.rstrip("/")
        if self.S3_ENDPOINT:
            return f"{self.S3_ENDPOINT.rstrip('/')}/{self.S3_BUCKET}"
        return f"https://{self.S3_BUCKET}.s3.{self.S3_REGION}.amazonaws.com"


settings = Settings()
