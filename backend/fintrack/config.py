from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List


class Settings(BaseSettings):
    # Database configuration
    DATABASE_URL: str  # PostgreSQL URL (required)

    UPLOAD_PATH: str = "./uploads"
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://localhost,http://localhost:80"
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000

    # Background job / Redis configuration
    REDIS_URL: str = "redis://redis:6379/0"
    IMPORT_QUEUE_NAME: str = "transaction_import"
    IMPORT_JOB_TIMEOUT: int = 1800  # 30 minutes

    # Local LLM (Ollama) used for column mapping and category suggestions
    OLLAMA_URL: str = "http://ollama:11434"
    OLLAMA_MODEL: str = "mistral"
    OLLAMA_TIMEOUT: int = 30  # seconds; an expired call counts as an AI failure
    AI_RATE_LIMIT: str = "30/minute"

    # Import / reconciliation tuning
    CLASSIFIER_CONFIDENCE_THRESHOLD: float = 0.7
    CSV_SAMPLE_LINES: int = 10
    IMPORT_ERROR_DISPLAY_LIMIT: int = 10
    BULK_WRITE_BATCH_SIZE: int = 500

    @field_validator("CLASSIFIER_CONFIDENCE_THRESHOLD")
    @classmethod
    def _validate_confidence_threshold(cls, value):
        if value < 0 or value > 1:
            raise ValueError("CLASSIFIER_CONFIDENCE_THRESHOLD must be between 0 and 1")
        return value

    @field_validator("CSV_SAMPLE_LINES", "IMPORT_ERROR_DISPLAY_LIMIT", "BULK_WRITE_BATCH_SIZE")
    @classmethod
    def _validate_positive(cls, value):
        if value < 1:
            raise ValueError("must be a positive integer")
        return value

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    class Config:
        env_file = ".env"
        extra = "ignore"  # Ignore extra environment variables not defined in the model


settings = Settings()
