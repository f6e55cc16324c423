"""CIRRUS — Central Configuration via Pydantic Settings."""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # ── Database ──
    database_url: str = ""
    migrations_dir: Optional[str] = None

    # ── GCP Cloud Billing Catalog ──
    gcp_api_key: str = ""
    gcp_catalog_base_url: str = "https://cloudbilling.googleapis.com/v1"
    gcp_page_size: int = 5000
    catalog_request_timeout: float = 30.0
    catalog_max_retries: int = 3

    # ── App ──
    log_level: str = "INFO"
    scheduler_enabled: bool = True
    sync_hour: int = 3  # Daily sync at 3 AM UTC
    sync_timeout_seconds: float = 3600.0

    @property
    def effective_database_url(self) -> str:
        """Return a SQLAlchemy URL, falling back to a local SQLite file.

        Accepts the libsql-style ``file:<path>`` form as well.
        """
        url = self.database_url or "sqlite:///./cloud-pricing.db"
        if url.startswith("file:"):
            path = url[len("file:") :].split("?", 1)[0]
            return f"sqlite:///{path}"
        return url

    @property
    def effective_migrations_dir(self) -> Path:
        if self.migrations_dir:
            return Path(self.migrations_dir)
        return Path(__file__).resolve().parent / "migrations" / "sql"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
