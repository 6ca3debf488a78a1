"""SubOrder aggregate (CQRS): the part of an order shipped from one hub.

State Machine:
    PENDING → ASSIGNED → IN_TRANSIT → OUT_FOR_DELIVERY → DELIVERED
    {ASSIGNED, IN_TRANSIT, OUT_FOR_DELIVERY} → {CANCELLED, RETURNED}
    Unrecognised courier statuses park an ASSIGNED sub-order in PROCESSING.
    Once the parcel is moving they are only logged. Updates never move a
    sub-order back to an earlier state.

ASSIGNED is entered when the courier accepts the shipment. Every later state
comes from courier status updates (webhook push or tracking pull).
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from logistics.domain import logistics
from logistics.order.events import ShipmentAssigned, SubOrderCreated, SubOrderStatusChanged


class SubOrderStatus(Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    PROCESSING = "processing"
    IN_TRANSIT = "in_transit"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


_TERMINAL = {SubOrderStatus.DELIVERED, SubOrderStatus.CANCELLED, SubOrderStatus.RETURNED}

# Courier updates only move forward; a late redelivery of an earlier status is refused
_VALID_TRANSITIONS = {
    SubOrderStatus.PENDING: {SubOrderStatus.ASSIGNED},
    SubOrderStatus.ASSIGNED: {
        SubOrderStatus.PROCESSING,
        SubOrderStatus.IN_TRANSIT,
        SubOrderStatus.OUT_FOR_DELIVERY,
    }
    | _TERMINAL,
    SubOrderStatus.PROCESSING: {SubOrderStatus.IN_TRANSIT, SubOrderStatus.OUT_FOR_DELIVERY} | _TERMINAL,
    SubOrderStatus.IN_TRANSIT: {SubOrderStatus.OUT_FOR_DELIVERY} | _TERMINAL,
    SubOrderStatus.OUT_FOR_DELIVERY: set(_TERMINAL),
    SubOrderStatus.DELIVERED: set(),  # terminal
    SubOrderStatus.CANCELLED: set(),  # terminal
    SubOrderStatus.RETURNED: set(),  # terminal
}

# An unrecognised status seen here is logged but does not replace the status
_LOG_ONLY_PROCESSING = {SubOrderStatus.IN_TRANSIT, SubOrderStatus.OUT_FOR_DELIVERY}

# Sub-orders in these states no longer hold their parent order open
SETTLED_STATUSES = {SubOrderStatus.DELIVERED, SubOrderStatus.CANCELLED}


class CostSource(Enum):
    LIVE_QUOTE = "live_quote"
    RATE_TABLE = "rate_table"
    DEFAULT_RATE = "default_rate"


@logistics.entity(part_of="SubOrder")
class SubOrderItem:
    """Snapshot of an order line as it was split onto this hub."""

    product_id = String(max_length=100)
    sku = String(max_length=100)
    name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    weight = Float(required=True, min_value=0.0)
    price = Float(required=True, min_value=0.0)

    @property
    def subtotal(self) -> float:
        return round(self.price * self.quantity, 2)


@logistics.entity(part_of="SubOrder")
class TrackingEvent:
    """One courier status update. Never edited once appended."""

    status = String(required=True, max_length=50)
    courier_status = String(max_length=100)
    description = String(max_length=500)
    location = String(max_length=200)
    raw_data = Text()
    occurred_at = DateTime(required=True)


@logistics.aggregate
class SubOrder:
    order_id = Identifier(required=True)
    hub_id = Identifier(required=True)
    hub_name = String(max_length=150)
    courier_id = Identifier()
    courier_name = String(max_length=100)
    status = String(choices=SubOrderStatus, default=SubOrderStatus.PENDING.value)
    items = HasMany(SubOrderItem)
    tracking_events = HasMany(TrackingEvent)
    total_weight = Float(default=0.0)
    items_total = Float(default=0.0)
    real_shipping_cost = Float(default=0.0)
    allocated_shipping_fee = Float(default=0.0)
    shipping_profit_loss = Float(default=0.0)
    cost_source = String(choices=CostSource)
    delivery_timeline_days = Integer()
    tracking_number = String(max_length=100)
    courier_shipment_id = String(max_length=100)
    delivered_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, order_id: str, shipment) -> "SubOrder":
        """Create the sub-order for one ``HubShipment`` produced by the splitter."""
        now = datetime.now(UTC)
        sub_order = cls(
            order_id=order_id,
            hub_id=shipment.hub_id,
            hub_name=shipment.hub_name,
            courier_id=shipment.courier_id,
            courier_name=shipment.courier_name,
            status=SubOrderStatus.PENDING.value,
            total_weight=shipment.total_weight,
            items_total=shipment.items_total,
            real_shipping_cost=shipment.real_cost,
            allocated_shipping_fee=shipment.allocated_fee,
            shipping_profit_loss=shipment.profit_loss,
            cost_source=shipment.cost_source,
            delivery_timeline_days=shipment.delivery_days,
            created_at=now,
            updated_at=now,
        )
        for item in shipment.items:
            sub_order.add_items(
                SubOrderItem(
                    product_id=item.product_id,
                    sku=item.sku,
                    name=item.name,
                    quantity=item.quantity,
                    weight=item.weight,
                    price=item.price,
                )
            )
        sub_order.add_tracking_events(
            TrackingEvent(
                status=SubOrderStatus.PENDING.value,
                description="Order received",
                location="Processing Center",
                occurred_at=now,
            )
        )
        sub_order.raise_(
            SubOrderCreated(
                sub_order_id=str(sub_order.id),
                order_id=order_id,
                hub_id=shipment.hub_id,
                courier_id=shipment.courier_id,
                item_count=len(shipment.items),
                total_weight=shipment.total_weight,
                real_shipping_cost=shipment.real_cost,
                allocated_shipping_fee=shipment.allocated_fee,
                shipping_profit_loss=shipment.profit_loss,
                created_at=now,
            )
        )
        return sub_order

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: SubOrderStatus) -> None:
        current = SubOrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    @property
    def is_settled(self) -> bool:
        return SubOrderStatus(self.status) in SETTLED_STATUSES

    @property
    def has_shipment(self) -> bool:
        return bool(self.tracking_number)

    # -------------------------------------------------------------------
    # Courier hand-off
    # -------------------------------------------------------------------
    def assign_shipment(self, tracking_number: str, courier_shipment_id: str | None = None) -> None:
        """Record the courier's acceptance of the shipment."""
        if self.has_shipment:
            raise ValidationError({"tracking_number": ["Shipment already created for this sub-order"]})
        self._assert_can_transition(SubOrderStatus.ASSIGNED)

        now = datetime.now(UTC)
        self.status = SubOrderStatus.ASSIGNED.value
        self.tracking_number = tracking_number
        self.courier_shipment_id = courier_shipment_id
        self.updated_at = now
        self.add_tracking_events(
            TrackingEvent(
                status=SubOrderStatus.ASSIGNED.value,
                description=f"Shipment created with {self.courier_name or 'courier'}",
                occurred_at=now,
            )
        )
        self.raise_(
            ShipmentAssigned(
                sub_order_id=str(self.id),
                order_id=str(self.order_id),
                tracking_number=tracking_number,
                courier_shipment_id=courier_shipment_id,
                assigned_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Courier status updates
    # -------------------------------------------------------------------
    def apply_courier_status(
        self,
        status: SubOrderStatus,
        courier_status: str | None = None,
        description: str | None = None,
        location: str | None = None,
        occurred_at: datetime | None = None,
        raw_data: str | None = None,
    ) -> bool:
        """Move to ``status`` and log the update.

        Returns False without touching the log when the sub-order is already in
        ``status``, so redelivered updates are harmless. Raises ValidationError
        for a move backwards or out of a terminal state.
        """
        current = SubOrderStatus(self.status)
        if status == current:
            return False

        now = datetime.now(UTC)
        if status == SubOrderStatus.PROCESSING and current in _LOG_ONLY_PROCESSING:
            self.updated_at = now
            self.add_tracking_events(
                TrackingEvent(
                    status=current.value,
                    courier_status=courier_status,
                    description=description or courier_status,
                    location=location,
                    raw_data=raw_data,
                    occurred_at=occurred_at or now,
                )
            )
            return True

        self._assert_can_transition(status)
        self.status = status.value
        self.updated_at = now
        if status == SubOrderStatus.DELIVERED:
            self.delivered_at = occurred_at or now
        self.add_tracking_events(
            TrackingEvent(
                status=status.value,
                courier_status=courier_status,
                description=description or courier_status,
                location=location,
                raw_data=raw_data,
                occurred_at=occurred_at or now,
            )
        )
        self.raise_(
            SubOrderStatusChanged(
                sub_order_id=str(self.id),
                order_id=str(self.order_id),
                tracking_number=self.tracking_number,
                previous_status=current.value,
                new_status=status.value,
                courier_status=courier_status,
                changed_at=now,
            )
        )
        return True
