"""Panitia Engine — Application configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings

from panitia_engine.registry.schema import (
    DEFAULT_GATEKEEPER_RULES,
    DEFAULT_REQUIRED_ROLES,
    GatekeeperRule,
)


class PanitiaSettings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # ── Assignment Store ───────────────────────────────────────
    database_url: str = ""
    postgres_user: str = "panitia"
    postgres_password: str = "change-me-in-production"
    postgres_db: str = "panitia"
    postgres_host: str = "localhost"
    postgres_port: int = 5432

    @property
    def database_url_sync(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # ── Generator ──────────────────────────────────────────────
    required_roles: list[str] = list(DEFAULT_REQUIRED_ROLES)
    gatekeeper_rules: list[GatekeeperRule] = list(DEFAULT_GATEKEEPER_RULES)
    min_commissions: int = 3
    min_available_members: int = 3
    min_filled_roles: int = 3
    balance_workload: bool = False

    # ── Locks & revisions ──────────────────────────────────────
    snapshot_on_regenerate: bool = True

    # ── Workload ───────────────────────────────────────────────
    workload_available_max: int = 3
    workload_heavy_max: int = 5

    # ── Change events ──────────────────────────────────────────
    event_history_size: int = 100

    # ── Dashboard ──────────────────────────────────────────────
    dashboard_host: str = "0.0.0.0"
    dashboard_port: int = 8000

    # ── Logging ────────────────────────────────────────────────
    log_level: str = "INFO"
    log_format: str = "json"


settings = PanitiaSettings()
