from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_APP_NAME = "storefront"


class StorefrontSettings(BaseSettings):
    """Settings shared by the storefront service and its checkout client."""

    app_name: str = Field(default=DEFAULT_APP_NAME)
    environment: Literal["local", "dev", "staging", "prod"] = Field(default="local")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    service_host: str = Field(default="0.0.0.0")
    service_port: int = Field(default=8000)
    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=False)
    tracing_endpoint: str | None = Field(default=None)
    tracing_protocol: Literal["http/protobuf", "grpc"] = Field(default="http/protobuf")
    tracing_insecure: bool = Field(default=True)
    tracing_sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    database_url: str | None = Field(default=None)

    currency: str = Field(default="INR", min_length=3, max_length=3)
    tax_rate: Decimal = Field(default=Decimal("0.18"), ge=Decimal("0"), lt=Decimal("1"))
    store_name: str = Field(default="Storefront")

    gateway_key_id: str = Field(default="")
    gateway_key_secret: SecretStr = Field(default=SecretStr(""))
    gateway_api_base_url: str = Field(default="https://api.razorpay.com/v1")
    gateway_timeout_seconds: float = Field(default=10.0, gt=0.0)
    gateway_max_attempts: int = Field(default=2, ge=1, le=5)
    checkout_script_url: str = Field(default="https://checkout.razorpay.com/v1/checkout.js")

    cart_webhook_url: str | None = Field(default=None)
    cart_webhook_timeout_seconds: float = Field(default=5.0, gt=0.0)

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"), env_prefix="STOREFRONT_", extra="ignore"
    )


@lru_cache
def get_settings() -> StorefrontSettings:
    """Return cached storefront settings."""

    return StorefrontSettings()
