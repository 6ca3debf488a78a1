"""Wiring of the logistics components.

External clients are created once by the entry point and passed to each
component's constructor; tests build a container around fakes.
"""

from dataclasses import dataclass, field

from logistics.catalog import ReferenceCatalog
from logistics.config import Settings
from logistics.courier import build_courier
from logistics.courier.port import CourierPort
from logistics.order.ingestion import OrderIngestion
from logistics.order.shipping import ShipmentBooking
from logistics.order.splitter import HubSplitter
from logistics.refunds import build_refund_connector
from logistics.refunds.port import RefundConnector
from logistics.returns.creation import ReturnDesk
from logistics.returns.inspection import InspectionDesk
from logistics.returns.reconciliation import ReturnReconciler


@dataclass
class Services:
    settings: Settings
    courier: CourierPort
    refunds: RefundConnector
    catalog: ReferenceCatalog = field(default_factory=ReferenceCatalog)

    def __post_init__(self):
        self.splitter = HubSplitter(self.catalog, self.courier, self.settings)
        self.ingestion = OrderIngestion(self.splitter, self.settings)
        self.booking = ShipmentBooking(self.courier, self.catalog)
        self.returns = ReturnDesk(self.courier, self.catalog, self.settings)
        self.inspection = InspectionDesk(self.refunds, self.settings)
        self.reconciler = ReturnReconciler(self.courier, self.settings)

    @classmethod
    def from_settings(cls, settings: Settings, courier_adapter: str = "fez", refund_adapter: str = "woocommerce"):
        return cls(
            settings=settings,
            courier=build_courier(settings, courier_adapter),
            refunds=build_refund_connector(settings, refund_adapter),
        )
