"""Centralised configuration loaded from environment variables / .env file."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # OpenRouter (LLM gateway)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    app_url: str = "https://recruitica.app"
    app_title: str = "Recruitica App"

    # Automation workflow webhooks
    draft_webhook_url: str = ""
    finalize_webhook_url: str = ""
    webhook_timeout_seconds: float = 60.0

    # Database
    database_url: str = "sqlite:///./recruitica.db"

    # Object storage for uploaded candidate documents
    storage_dir: Path = Path("./storage")
    public_base_url: str = "http://localhost:8000"
    keynotes_bucket: str = "candidate-keynotes"

    # Client directory
    search_result_cap: int = 50

    # Request ownership / API guard
    default_user_id: str = "local-user"
    api_key: str = ""

    # Logging
    log_level: str = "INFO"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def effective_database_url(self) -> str:
        """Return a SQLAlchemy-compatible URL.

        Hosted Postgres providers inject ``postgres://`` but SQLAlchemy 2.0+
        requires ``postgresql://``.
        """
        url = self.database_url
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url


settings = Settings()


def validate_config() -> list[str]:
    """Return a list of warnings for settings the workflow cannot run without."""
    import logging

    log = logging.getLogger(__name__)
    warnings = []
    if not settings.openrouter_api_key:
        warnings.append("OPENROUTER_API_KEY not set – AI refinement will fail")
    if not settings.draft_webhook_url:
        warnings.append("DRAFT_WEBHOOK_URL not set – draft generation will fail")
    if not settings.finalize_webhook_url:
        warnings.append("FINALIZE_WEBHOOK_URL not set – finalized emails are not delivered")
    for msg in warnings:
        log.warning(msg)
    return warnings
