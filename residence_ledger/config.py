"""
Application configuration.

All configuration is loaded from environment variables.
Never hardcode connection strings or account codes in services;
read them from Settings so every deployment can map its own
chart of accounts.
"""

import os
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


def _csv(name: str, default: str) -> tuple[str, ...]:
    """Read a comma-separated environment variable as a tuple."""
    raw = os.getenv(name, default)
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Residence Ledger"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./residence_ledger.db"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT: str = os.getenv(
        "LOG_FORMAT",
        "console" if ENVIRONMENT == "development" else "json",
    ).lower()

    # Chart of accounts
    CASH_ACCOUNT_CODE: str = os.getenv("CASH_ACCOUNT_CODE", "1000")
    AR_PARENT_CODE: str = os.getenv("AR_PARENT_CODE", "1100")
    AP_PARENT_CODE: str = os.getenv("AP_PARENT_CODE", "2000")
    ADVANCE_PAYMENT_PARENT_CODE: str = os.getenv(
        "ADVANCE_PAYMENT_PARENT_CODE", "2200"
    )
    # Parents whose balance includes their explicitly linked children
    AGGREGATION_PARENT_CODES: tuple[str, ...] = _csv(
        "AGGREGATION_PARENT_CODES", f"{AR_PARENT_CODE},{AP_PARENT_CODE}"
    )
    # Property/fixed-asset accounts shared by all residences
    COMPANY_WIDE_ACCOUNT_CODES: tuple[str, ...] = _csv(
        "COMPANY_WIDE_ACCOUNT_CODES", ""
    )

    # Balance sheet
    BALANCE_TOLERANCE: Decimal = Decimal(os.getenv("BALANCE_TOLERANCE", "0.01"))
    AUTO_CORRECT_EQUITY: bool = (
        os.getenv("AUTO_CORRECT_EQUITY", "false").lower() == "true"
    )
    MONTHLY_WORKERS: int = int(os.getenv("MONTHLY_WORKERS", "12"))


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    Using lru_cache means the Settings object is created once
    and reused for all subsequent calls. Services that need
    different values (tests, one-off reports) receive their own
    Settings instance through their constructor instead.
    """
    return Settings()
