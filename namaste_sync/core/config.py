"""Application configuration for NAMASTE Sync.

Configuration is loaded from environment variables (and an optional ``.env``
file), making the service suitable for container-based deployments.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "namaste_sync"
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"

    database_url: str | None = None

    # Hybrid persistence
    remote_probe_timeout_seconds: float = 2.0
    local_store_dir: str = ".namaste_store"
    audit_retention_cap: int = 1000
    seed_csv_path: str | None = None

    # Secondary audit sink (e.g. a Supabase REST table endpoint)
    analytics_sink_url: str | None = None
    analytics_sink_api_key: str | None = None
    analytics_sink_timeout_seconds: float = 3.0

    # Bulk ingestion: when true, any row error blocks the upload.
    ingestion_require_clean: bool = False

    default_actor_id: str = "demo-user-123"
    default_actor_name: str = "Dr. Priya Sharma"

    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8080"]

    @property
    def sqlalchemy_database_uri(self) -> str:
        if self.database_url:
            return self.database_url

        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


settings = Settings()


def get_settings() -> Settings:
    return settings
