"""
Configuration management for the knowledge intake service.

This module centralizes environment-driven configuration using Pydantic's
`BaseSettings`. All components consume the shared `settings` instance to ensure
consistent configuration across the stack.
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from pydantic import AnyUrl, Field, PositiveInt, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration sourced from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    # General application settings
    API_TITLE: str = "Knowledge Intake API"
    API_VERSION: str = "0.1.0"
    DEBUG: bool = False
    ENVIRONMENT: str = Field("development", pattern=r"^(development|staging|production)$")
    ALLOWED_ORIGINS: List[str] = Field(default_factory=lambda: ["*"])
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # External ingestion service
    INGESTION_SERVICE_URL: AnyUrl = Field("http://localhost:8000")
    INGESTION_FILE_UPLOAD_PATH: str = "/api/v1/v2/knowledge/upload"
    INGESTION_URL_UPLOAD_PATH: str = "/api/v1/v2/knowledge/upload/url"
    INGESTION_TIMEOUT_SECONDS: float = 60.0
    UPLOAD_CHUNK_SIZE: PositiveInt = 64 * 1024

    # Fallback simulator
    SIMULATOR_INTERVAL_SECONDS: float = Field(0.5, ge=0)
    SIMULATOR_MIN_INCREMENT: int = Field(5, ge=1, le=100)
    SIMULATOR_MAX_INCREMENT: int = Field(15, ge=1, le=100)
    SIMULATOR_COMPLETION_DELAY_SECONDS: float = Field(0.5, ge=0)

    # Knowledge store
    KNOWLEDGE_STORE: str = Field("mongo", pattern=r"^(mongo|memory)$")
    MONGODB_URL: AnyUrl = Field("mongodb://localhost:27017")
    MONGODB_DATABASE: str = "knowledge_intake"
    KNOWLEDGE_COLLECTION: str = "knowledge_items"

    # Notifications
    ENABLE_NOTIFICATIONS: bool = False
    KAFKA_BOOTSTRAP_SERVERS: str = "localhost:9092"
    NOTIFICATIONS_TOPIC: str = "knowledge-intake.sources.events"

    # Tracing
    OTEL_EXPORTER_OTLP_ENDPOINT: Optional[AnyUrl] = None
    OTEL_EXPORTER_OTLP_HEADERS: Optional[str] = None

    @field_validator("ALLOWED_ORIGINS", mode="before")
    def _split_origins(cls, value: str | List[str]) -> List[str]:
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @model_validator(mode="after")
    def _check_increment_bounds(self) -> "Settings":
        if self.SIMULATOR_MIN_INCREMENT > self.SIMULATOR_MAX_INCREMENT:
            raise ValueError("SIMULATOR_MIN_INCREMENT must not exceed SIMULATOR_MAX_INCREMENT")
        return self


@lru_cache()
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()


# Singleton-style settings instance for modules that prefer direct access.
settings = get_settings()
