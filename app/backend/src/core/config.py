"""Application configuration utilities."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings derived from environment variables."""

    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    redis_enabled_flag: bool = Field(default=True, alias="REDIS_ENABLED")
    record_key_prefix: str = Field(default="memorial", alias="RECORD_KEY_PREFIX")
    s3_bucket: str | None = Field(default=None, alias="S3_BUCKET")
    s3_endpoint_url: str | None = Field(default=None, alias="S3_ENDPOINT_URL")
    s3_key_prefix: str = Field(default="", alias="S3_KEY_PREFIX")
    aws_region: str = Field(default="auto", alias="AWS_REGION")
    aws_access_key_id: str | None = Field(
        default=None, alias="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: str | None = Field(
        default=None, alias="AWS_SECRET_ACCESS_KEY"
    )
    public_base_url: str | None = Field(default=None, alias="PUBLIC_BASE_URL")
    upload_url_expires_seconds: int = Field(
        default=360, ge=1, le=3600, alias="UPLOAD_URL_EXPIRES_SECONDS"
    )
    batch_max_slugs: int = Field(default=100, ge=1, alias="BATCH_MAX_SLUGS")
    cors_allow_origins: str = Field(default="*", alias="CORS_ALLOW_ORIGINS")

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    @property
    def redis_enabled(self) -> bool:
        """Return ``True`` when the Redis record store should be used."""

        return self.redis_enabled_flag

    @property
    def allowed_origins(self) -> list[str]:
        """Return the configured CORS origins as a list."""

        origins = [
            origin.strip()
            for origin in self.cors_allow_origins.split(",")
            if origin.strip()
        ]
        return origins or ["*"]


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


__all__ = ["Settings", "get_settings"]
