"""Application configuration loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is loaded from environment variables (or .env file).

    Sync tuning (interval, refresh margin, page cap) lives in
    ``src/leaderboard/sync_config.yaml`` instead.
    """

    # --- App ---
    app_name: str = "Squadboard"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"
    environment: str = "development"  # development | staging | production

    # --- Challenge platform ---
    squad_api_base_url: str = "https://api-challenge.squadeasy.com"
    squad_email: str
    squad_password: str  # login secret for the polling account
    squad_request_timeout_seconds: float = 30.0

    # --- Database (TimescaleDB) ---
    database_url: str  # postgres connection string for asyncpg
    db_pool_min_size: int = 2
    db_pool_max_size: int = 10
    db_command_timeout_seconds: float = 30.0

    # --- Server ---
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: list[str] = ["http://localhost:3000"]

    # --- Sync ---
    sync_enabled: bool = True
    shutdown_grace_seconds: float = 30.0  # wait for detached fan-out on shutdown

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
