from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings."""

    # Application
    ENVIRONMENT: Literal["local", "development", "production", "test"] = "local"
    LOG_LEVEL: str = "INFO"
    STORE_NAME: str = "ipshopy"
    STORE_URL: str = "https://www.ipshopy.com/"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./storefront.db"
    DB_POOL_SIZE: int = 40
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Auth
    JWT_SECRET: str = "test-jwt-secret"
    JWT_ALGORITHM: str = "HS256"

    # Razorpay
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_WEBHOOK_SECRET: str = ""
    RAZORPAY_BASE_URL: str = "https://api.razorpay.com/v1"
    RAZORPAY_TIMEOUT_SECONDS: float = 30.0
    RAZORPAY_MAX_RETRIES: int = 3
    RAZORPAY_RETRY_DELAY_SECONDS: float = 1.0
    RAZORPAY_RECEIPT_PREFIX: str = "rcpt_"
    RAZORPAY_PAYMENT_CAPTURE: bool = True

    # Checkout economics
    DEFAULT_CURRENCY: str = "INR"
    ORDER_TAX_RATE: Decimal = Decimal("0")
    ORDER_TAX_TITLE: str = "GST"
    FREE_SHIPPING_THRESHOLD: Decimal = Decimal("500")
    COURIER_CHARGE_LOCAL: Decimal = Decimal("50")
    COURIER_CHARGE_ZONAL: Decimal = Decimal("80")
    COURIER_CHARGE_NATIONAL: Decimal = Decimal("120")

    # Webhooks
    WEBHOOK_MAX_RETRIES: int = 5

    # Redis (ARQ worker + distributed rate limiting)
    REDIS_URL: str = "redis://localhost:6379/0"
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("DATABASE_URL")
    @classmethod
    def assemble_db_connection(cls, v: Optional[str]) -> str:
        if isinstance(v, str):
            if v.startswith("postgresql://"):
                return v.replace("postgresql://", "postgresql+psycopg://", 1)
        return v

    @property
    def razorpay_configured(self) -> bool:
        return bool(
            self.RAZORPAY_KEY_ID
            and self.RAZORPAY_KEY_SECRET
            and self.RAZORPAY_WEBHOOK_SECRET
        )


@lru_cache
def get_settings() -> Settings:
    """
    Return the global settings instance, cached.
    """
    return Settings()
