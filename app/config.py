from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
from dataclasses import dataclass, field
from decimal import Decimal
import json


# Fulfillment location per Canadian province/territory code
DEFAULT_PROVINCE_LOCATIONS = {
    "ON": "toronto-warehouse",
    "QC": "montreal-warehouse",
    "NB": "montreal-warehouse",
    "NS": "montreal-warehouse",
    "PE": "montreal-warehouse",
    "NL": "montreal-warehouse",
    "MB": "calgary-warehouse",
    "SK": "calgary-warehouse",
    "AB": "calgary-warehouse",
    "NT": "calgary-warehouse",
    "NU": "calgary-warehouse",
    "BC": "vancouver-warehouse",
    "YT": "vancouver-warehouse",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # JWT Settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # App Settings
    APP_NAME: str = "Checkout Pipeline"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Checkout pricing
    TAX_RATE: float = 0.13  # Flat rate applied to the subtotal
    FLAT_SHIPPING_COST: float = 10.00

    # Fulfillment locations - accepts JSON object or "ON=loc,BC=loc"
    DEFAULT_FULFILLMENT_LOCATION: str = "main-warehouse"
    PROVINCE_LOCATION_MAP: dict[str, str] = DEFAULT_PROVINCE_LOCATIONS

    # Order requirement fallbacks when no active rule is configured
    DEFAULT_MINIMUM_ORDER_QUANTITY: int = 5
    DEFAULT_WHOLESALE_MINIMUM_QUANTITY: int = 100

    # Card payment gateway
    PAYMENT_GATEWAY_URL: str = ""  # e.g. "https://payments.example.com/v1/charges"
    PAYMENT_GATEWAY_API_KEY: str = ""
    PAYMENT_DISPATCH_TIMEOUT_SECONDS: float = 15.0

    # Email/SMTP Settings
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = ""  # Sender email (defaults to SMTP_USER)
    SMTP_FROM_NAME: str = "Order Desk"

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    PAYMENT_RECONCILIATION_INTERVAL_MINUTES: int = 30
    PAYMENT_RECONCILIATION_AGE_MINUTES: int = 60 * 24  # Awaiting confirmation longer than a day

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @field_validator('PROVINCE_LOCATION_MAP', mode='before')
    @classmethod
    def parse_province_locations(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pairs = [pair.split('=', 1) for pair in v.split(',') if '=' in pair]
                return {code.strip().upper(): location.strip() for code, location in pairs}
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


@dataclass(frozen=True)
class CheckoutConfig:
    """Pricing and routing parameters injected into the checkout pipeline."""

    province_locations: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_PROVINCE_LOCATIONS))
    default_location: str = "main-warehouse"
    tax_rate: Decimal = Decimal("0.13")
    flat_shipping_cost: Decimal = Decimal("10.00")
    default_minimum_quantity: int = 5
    default_wholesale_minimum_quantity: int = 100
    payment_timeout_seconds: float = 15.0

    @classmethod
    def from_settings(cls, source: Settings) -> "CheckoutConfig":
        return cls(
            province_locations={k.upper(): v for k, v in source.PROVINCE_LOCATION_MAP.items()},
            default_location=source.DEFAULT_FULFILLMENT_LOCATION,
            tax_rate=Decimal(str(source.TAX_RATE)),
            flat_shipping_cost=Decimal(str(source.FLAT_SHIPPING_COST)).quantize(Decimal("0.01")),
            default_minimum_quantity=source.DEFAULT_MINIMUM_ORDER_QUANTITY,
            default_wholesale_minimum_quantity=source.DEFAULT_WHOLESALE_MINIMUM_QUANTITY,
            payment_timeout_seconds=source.PAYMENT_DISPATCH_TIMEOUT_SECONDS,
        )
