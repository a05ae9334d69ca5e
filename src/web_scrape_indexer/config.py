from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    vector_url: str | None = Field(default=None, alias="UPSTASH_VECTOR_REST_URL")
    vector_token: str | None = Field(default=None, alias="UPSTASH_VECTOR_REST_TOKEN")

    redis_url: str | None = Field(default=None, alias="UPSTASH_REDIS_REST_URL")
    redis_token: str | None = Field(default=None, alias="UPSTASH_REDIS_REST_TOKEN")
    job_status_ttl_s: int = Field(default=86400, alias="JOB_STATUS_TTL_SECONDS")

    firecrawl_api_key: str | None = Field(default=None, alias="FIRECRAWL_API_KEY")
    firecrawl_api_url: str = Field(default="https://api.firecrawl.dev", alias="FIRECRAWL_API_URL")
    firecrawl_docker_url: str = Field(default="http://localhost:3002", alias="FIRECRAWL_DOCKER_URL")
    firecrawl_docker_api_key: str | None = Field(default=None, alias="FIRECRAWL_DOCKER_API_KEY")

    urls_json: str | None = Field(default=None, alias="URLS_JSON")
    brand_slug: str = Field(default="default", alias="BRAND_SLUG")
    job_id: str | None = Field(default=None, alias="JOB_ID")
    scraper_engine: str = Field(default="static", alias="SCRAPER_ENGINE")
    callback_url: str | None = Field(default=None, alias="CALLBACK_URL")
    callback_secret: str | None = Field(default=None, alias="CALLBACK_SECRET")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")


def load_settings() -> Settings:
    return Settings()
