from pydantic_settings import BaseSettings
from functools import lru_cache
import os


class Settings(BaseSettings):
    app_name: str = "CV Screening Pipeline API"
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Database - supports both SQLite (local) and PostgreSQL (production)
    database_url: str = "sqlite+aiosqlite:///./cv_screening.db"

    # CORS - comma-separated list of allowed origins
    cors_origins: str = "http://localhost:3000,http://localhost:5173"

    # AI/LLM Configuration
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    ai_parse_attempts: int = 2
    ai_retry_delay_ms: int = 500  # multiplied by attempt number
    ai_timeout_seconds: float = 60.0

    # Storage: "local" (uploads dir) or "supabase"
    storage_backend: str = "local"
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    supabase_bucket: str = "cv-documents"
    uploads_dir: str = "./uploads"

    # Text extraction limits
    min_text_length: int = 10
    max_extracted_chars: int = 50000

    # Pipeline guard: how long a run holds a CV document (keep below stuck_job_timeout)
    lease_seconds: int = 240

    # Worker
    worker_concurrency: int = 4
    worker_poll_interval: float = 2.0
    stuck_job_timeout: int = 300  # 5 minutes
    job_max_attempts: int = 3

    class Config:
        env_file = ".env"
        extra = "ignore"
        # Make field names case-insensitive for environment variables
        case_sensitive = False

    def get_cors_origins(self) -> list:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache()
def get_settings() -> Settings:
    return Settings()
