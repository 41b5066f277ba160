"""
Application configuration using pydantic-settings.
All settings read from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Central configuration for the VAT document intake pipeline."""

    # ── Application ──────────────────────────────────────────
    APP_NAME: str = "vat-intake"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Storage ──────────────────────────────────────────────
    ARTIFACT_ROOT: str = "/data/artifacts"
    MAX_UPLOAD_SIZE_MB: int = 50
    SUPPORTED_MIME_TYPES: str = (
        "application/pdf,text/plain,text/csv,"
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet,"
        "application/vnd.ms-excel,image/png,image/jpeg,image/webp"
    )

    # ── Extraction ───────────────────────────────────────────
    EXTRACTION_ACCEPT_THRESHOLD: float = 0.60
    TABULAR_BASE_CONFIDENCE: float = 0.80
    CONVERGENCE_BONUS: float = 0.10
    CONVERGENCE_CAP: float = 0.95
    AMOUNT_TOLERANCE: float = 0.01
    EMERGENCY_CONFIDENCE_CEILING: float = 0.30
    EMERGENCY_KEYWORD_WINDOW: int = 80

    # ── External Extraction Service ──────────────────────────
    # Unset URL disables Strategy C
    EXTERNAL_EXTRACTION_URL: Optional[str] = None
    EXTERNAL_API_KEY: Optional[str] = None
    EXTERNAL_TIMEOUT_SECONDS: float = 20.0

    # ── Duplicate Detection ──────────────────────────────────
    DUPLICATE_WEIGHT_CONTENT: float = 0.50
    DUPLICATE_WEIGHT_SIZE: float = 0.20
    DUPLICATE_WEIGHT_FILENAME: float = 0.15
    DUPLICATE_WEIGHT_DATE: float = 0.05
    DUPLICATE_WEIGHT_TOTAL: float = 0.05
    DUPLICATE_SIZE_RATIO: float = 0.95
    DUPLICATE_FILENAME_SIMILARITY: float = 0.80
    DUPLICATE_TOTAL_TOLERANCE: float = 0.01
    DUPLICATE_THRESHOLD: float = 0.80

    # ── Compliance ───────────────────────────────────────────
    VAT_COUNTRY_PREFIX: str = "IE"
    VAT_FLAG_EXAMPLE_DIGITS: bool = False
    EXPECTED_CURRENCY: str = "EUR"
    VAT_CALCULATION_TOLERANCE: float = 0.02

    # ── Tuning ───────────────────────────────────────────────
    TUNING_PROFILE_PATH: Optional[str] = None
    TUNING_EXPERIMENT_ID: str = "extraction-profile"

    # ── Concurrency ──────────────────────────────────────────
    MAX_CONCURRENT_DOCUMENTS: int = 8

    # ── Observability ────────────────────────────────────────
    PROMETHEUS_ENABLED: bool = True
    # Port for the metrics endpoint started by the batch runner; unset disables it
    METRICS_PORT: Optional[int] = None

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }

    @property
    def supported_mime_types(self) -> set[str]:
        return {m.strip().lower() for m in self.SUPPORTED_MIME_TYPES.split(",") if m.strip()}


# Singleton instance
settings = Settings()
