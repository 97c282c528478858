"""Pydantic-settings configuration for the backtest completion pipeline.

Loads store, cache, engine and narrative parameters from the .env file with
sensible defaults for local development. Computed fields produce
fully-formed connection URLs for each service.
"""

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Project
    project_name: str = "Backtest Pipeline"
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Snapshot store (backtests + result snapshots)
    snapshot_db_host: str = "localhost"
    snapshot_db_port: int = 5432
    snapshot_db_name: str = "backtest_snapshots"
    snapshot_db_user: str = "backtest_user"
    snapshot_db_password: str = ""
    snapshot_database_url_override: str = ""

    # History store (trade log + per-day holdings)
    history_db_host: str = "localhost"
    history_db_port: int = 5432
    history_db_name: str = "backtest_history"
    history_db_user: str = "backtest_user"
    history_db_password: str = ""
    history_database_url_override: str = ""

    # SQLAlchemy pool settings
    db_pool_size: int = 10
    db_max_overflow: int = 5
    db_pool_pre_ping: bool = True
    db_sslmode: str = "prefer"  # Set to "require" in production

    # Redis (job id -> backtest id mapping)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str = ""
    redis_max_connections: int = 20
    job_mapping_ttl_hours: int = 24

    # Simulation engine
    engine_base_url: str = "http://localhost:8000"
    engine_callback_url: str = "http://localhost:8080/api/backtests/callback"
    engine_timeout_seconds: float = 30.0
    engine_max_retries: int = 3

    # Narrative generator
    anthropic_api_key: str = ""
    report_model: str = "claude-sonnet-4-5"
    report_max_tokens: int = 4096
    report_timeout_seconds: float = 120.0

    # Completion pipeline
    batch_chunk_size: int = 1000
    completion_workers: int = 4

    @computed_field
    @property
    def snapshot_database_url(self) -> str:
        """Sync connection string for the snapshot store (psycopg2)."""
        if self.snapshot_database_url_override:
            return self.snapshot_database_url_override
        return _postgres_url(
            self.snapshot_db_user,
            self.snapshot_db_password,
            self.snapshot_db_host,
            self.snapshot_db_port,
            self.snapshot_db_name,
            self.db_sslmode,
        )

    @computed_field
    @property
    def history_database_url(self) -> str:
        """Sync connection string for the history store (psycopg2)."""
        if self.history_database_url_override:
            return self.history_database_url_override
        return _postgres_url(
            self.history_db_user,
            self.history_db_password,
            self.history_db_host,
            self.history_db_port,
            self.history_db_name,
            self.db_sslmode,
        )

    @computed_field
    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"


def _postgres_url(
    user: str, password: str, host: str, port: int, name: str, sslmode: str
) -> str:
    base = f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"
    if sslmode and sslmode != "disable":
        return f"{base}?sslmode={sslmode}"
    return base


# Singleton instance
settings = Settings()
