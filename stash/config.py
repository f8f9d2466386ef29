"""Application configuration via environment variables."""

import os
import tempfile

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Local state (job history, model catalogs, AI preferences)
    state_dir: str = os.path.join(tempfile.gettempdir(), "stash_state")

    # Job tracking
    max_jobs: int = 20
    job_retention_hours: int = 24

    # AI providers
    catalog_refresh_on_startup: bool = True
    provider_timeout_seconds: float = 30.0
    claude_api_base: str = "https://api.anthropic.com"
    openai_api_base: str = "https://api.openai.com"

    # Batch processing
    kindle_insert_batch_size: int = 50
    transcript_chunk_size: int = 15000

    log_level: str = "INFO"
    port: int = 8000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "env_prefix": "STASH_"}


settings = Settings()
