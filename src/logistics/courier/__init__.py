"""Courier integration: port, adapters, response classifier and status table."""

from logistics.config import Settings
from logistics.courier.port import CourierPort


def build_courier(settings: Settings, adapter: str = "fez") -> CourierPort:
    """Construct a courier adapter from settings."""
    if adapter == "fez":
        from logistics.courier.fez_adapter import FezCourier

        return FezCourier.from_settings(settings)
    if adapter == "fake":
        from logistics.courier.fake_adapter import FakeCourier

        return FakeCourier()
    raise ValueError(f"Unknown courier adapter: {adapter}")
