from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    ENVIRONMENT: str = Field("development")
    LOG_LEVEL: str = Field("INFO")
    LOG_JSON: bool = Field(False)

    # File storage
    DOCUMENT_BUCKET: str = Field("cap-table-documents")
    PUBLIC_STORAGE_URL: Optional[str] = Field(None)

    # Ledger rules
    MAX_RECORD_AGE_YEARS: int = Field(50, ge=1)
    BASE_CURRENCY: str = Field("USD")

    # Compensating actions
    COMPENSATION_MAX_ATTEMPTS: int = Field(3, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> LedgerSettings:
    return LedgerSettings()
