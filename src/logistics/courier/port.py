"""Courier port: the interface every delivery-provider adapter implements.

Adapters raise ``CourierUnavailable`` for authentication, network and
provider-side failures so callers can fall back or defer.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime

from logistics.config import CourierEnvironment
from logistics.courier.status import map_courier_status
from logistics.order.sub_order import SubOrderStatus


@dataclass(frozen=True)
class CourierCredentials:
    token: str
    secret: str


@dataclass(frozen=True)
class ShippingQuote:
    amount: float
    delivery_days: int | None = None


@dataclass(frozen=True)
class CreatedShipment:
    """Identifiers the courier issued for a new shipment.

    ``tracking_id`` is what status updates and tracking lookups are keyed by.
    """

    external_order_id: str
    tracking_id: str


@dataclass(frozen=True)
class TrackingHistoryEntry:
    status: str
    description: str | None = None
    occurred_at: datetime | None = None


@dataclass(frozen=True)
class TrackingSnapshot:
    status: str
    events: list[TrackingHistoryEntry] = field(default_factory=list)
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Address:
    name: str
    phone: str
    address: str
    city: str
    state: str


@dataclass(frozen=True)
class ShipmentRequest:
    """Everything a courier needs to book a delivery or a return pickup."""

    reference: str
    sender: Address
    recipient: Address
    weight: float
    declared_value: float
    description: str
    is_return: bool = False


class CourierPort(ABC):
    """Abstract interface for courier adapters."""

    @abstractmethod
    def authenticate(self, env: CourierEnvironment | None = None) -> CourierCredentials:
        """Obtain (or reuse) credentials for the given environment."""
        ...

    @abstractmethod
    def quote(self, origin_state: str, destination_state: str, weight: float) -> ShippingQuote:
        """Live price for moving ``weight`` kg between two states."""
        ...

    @abstractmethod
    def create_shipment(self, request: ShipmentRequest) -> CreatedShipment:
        """Book a shipment."""
        ...

    @abstractmethod
    def fetch_tracking(self, tracking_id: str) -> TrackingSnapshot:
        """Current courier status and history for a shipment."""
        ...

    def map_status(self, courier_status: str | None) -> SubOrderStatus:
        return map_courier_status(courier_status)

    def close(self) -> None:
        """Release held connections. Nothing to release by default."""
