"""
Configuration settings for the GovFlow eligibility and form workflow engine
"""
from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Storage Configuration
    storage_backend: str = Field(default="memory", env="STORAGE_BACKEND")  # memory | mongo
    mongodb_url: str = Field(default="mongodb://localhost:27017", env="MONGODB_URL")
    mongodb_db_name: str = Field(default="govflow_db", env="MONGODB_DB_NAME")

    # Catalog Configuration
    catalog_path: Optional[str] = Field(default=None, env="CATALOG_PATH")

    # Collaborator APIs
    profile_api_url: str = Field(default="http://localhost:8101", env="PROFILE_API_URL")
    extraction_api_url: str = Field(default="http://localhost:8102", env="EXTRACTION_API_URL")
    government_api_url: str = Field(default="http://localhost:8103", env="GOVERNMENT_API_URL")
    government_api_key: str = Field(default="", env="GOVERNMENT_API_KEY")

    # Timeouts (seconds) for calls that leave the process
    extraction_timeout_seconds: float = Field(default=30.0, env="EXTRACTION_TIMEOUT_SECONDS")
    submission_timeout_seconds: float = Field(default=60.0, env="SUBMISSION_TIMEOUT_SECONDS")
    profile_timeout_seconds: float = Field(default=10.0, env="PROFILE_TIMEOUT_SECONDS")

    # Auto-fill Configuration
    autofill_min_confidence: float = Field(default=0.6, ge=0.0, le=1.0, env="AUTOFILL_MIN_CONFIDENCE")
    autofill_max_retries: int = Field(default=3, ge=1, env="AUTOFILL_MAX_RETRIES")

    # Application Configuration
    app_name: str = Field(default="GovFlow Eligibility & Form Workflow Engine", env="APP_NAME")
    app_version: str = Field(default="1.0.0", env="APP_VERSION")
    debug: bool = Field(default=False, env="DEBUG")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    # API Configuration
    api_prefix: str = Field(default="/api/v1", env="API_PREFIX")
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:8080",
        env="CORS_ORIGINS"
    )

    def get_cors_origins_list(self) -> List[str]:
        """Get CORS origins as a list"""
        if ',' in self.cors_origins:
            return [origin.strip() for origin in self.cors_origins.split(',')]
        return [self.cors_origins.strip()]

    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create global settings instance
settings = Settings()

if settings.storage_backend not in ("memory", "mongo"):
    raise ValueError(
        f"STORAGE_BACKEND must be 'memory' or 'mongo', got '{settings.storage_backend}'"
    )
