from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "dev"
    host: str = "0.0.0.0"
    port: int = 8080

    database_url: str = "sqlite:///./receipt_vault.db"

    storage_backend: Literal["local", "s3"] = "local"
    local_storage_path: Path = Path("./receipts")

    s3_endpoint_url: str | None = None
    s3_region: str | None = None
    s3_bucket: str = "receipt-vault"
    s3_access_key_id: str | None = None
    s3_secret_access_key: str | None = None

    extractor_backend: Literal["openai", "ollama"] = "openai"
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llava"
    extraction_timeout_seconds: float = 120.0

    pdf_render_dpi: int = 300
    max_upload_bytes: int = 50 * 1024 * 1024

    auth_user: str | None = None
    auth_password: str | None = None


settings = Settings()
