"""Runtime configuration for the logistics service.

Values come from ``HUBSHIP_``-prefixed environment variables (or a ``.env``
file). Build a ``Settings`` instance at the entry point and hand it to the
components that need it.
"""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AllocationPolicy(Enum):
    EQUAL = "equal"
    PROPORTIONAL = "proportional"


class CourierEnvironment(Enum):
    SANDBOX = "sandbox"
    LIVE = "live"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="HUBSHIP_",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")  # json or console

    # Returns
    return_window_days: int = Field(default=14, ge=0)
    refund_currency: str = Field(default="NGN")

    # Shipping allocation
    allocation_policy: AllocationPolicy = Field(default=AllocationPolicy.EQUAL)
    fallback_base_rate: float = Field(default=2500.0, ge=0)
    fallback_per_kg_rate: float = Field(default=500.0, ge=0)
    fallback_vat_percentage: float = Field(default=7.5, ge=0)
    min_weight_threshold: float = Field(default=0.0, ge=0)
    default_delivery_days: int = Field(default=3, ge=0)
    default_item_weight: float = Field(default=0.5, ge=0)
    default_hub_id: str | None = Field(default=None)
    hub_meta_key: str = Field(default="_hub_id")

    # Courier
    courier_env: CourierEnvironment = Field(default=CourierEnvironment.SANDBOX)
    courier_user_id: str = Field(default="")
    courier_password: str = Field(default="")
    courier_timeout_seconds: float = Field(default=15.0, gt=0)
    quote_timeout_seconds: float = Field(default=5.0, gt=0)

    # Commerce backend
    commerce_webhook_secret: str | None = Field(default=None)
    commerce_api_url: str = Field(default="")
    commerce_consumer_key: str = Field(default="")
    commerce_consumer_secret: str = Field(default="")
    commerce_timeout_seconds: float = Field(default=20.0, gt=0)

    # Reconciliation
    sync_max_workers: int = Field(default=4, ge=1)
