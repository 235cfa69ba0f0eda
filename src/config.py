"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file)."""

    # --- App ---
    app_name: str = "VibeHealth Engine"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Remote sync ---
    remote_sync_url: str = "http://localhost:8080/api/v1/sync"
    remote_sync_timeout_seconds: float = 10.0
    reconcile_interval_seconds: float = 300.0  # 5 minutes

    # --- Connectivity ---
    connectivity_probe_url: str = ""  # empty = state is pushed in by the platform layer
    connectivity_probe_interval_seconds: float = 15.0
    assume_online_at_start: bool | None = None  # None = unknown until first probe

    # --- Local store ---
    database_url: str = ""  # empty = in-memory store
    database_pool_size: int = 10

    # --- CORS ---
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
