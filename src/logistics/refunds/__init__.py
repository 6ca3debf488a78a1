"""Refund connectors for the commerce backend."""

from logistics.config import Settings
from logistics.refunds.port import RefundConnector


def build_refund_connector(settings: Settings, adapter: str = "woocommerce") -> RefundConnector:
    if adapter == "woocommerce":
        from logistics.refunds.woocommerce_adapter import WooCommerceRefunds

        return WooCommerceRefunds.from_settings(settings)
    if adapter == "fake":
        from logistics.refunds.fake_adapter import FakeRefunds

        return FakeRefunds(currency=settings.refund_currency)
    raise ValueError(f"Unknown refund adapter: {adapter}")
