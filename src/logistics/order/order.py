"""Order aggregate (CQRS): one row per external commerce order.

The external order id is the idempotency key for ingestion. ``overall_status``
changes only through ``mark_delivered``, which the sub-order roll-up calls.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.fields import DateTime, Float, Integer, String, Text

from logistics.domain import logistics
from logistics.order.events import OrderDelivered, OrderIngested


class OverallStatus(Enum):
    PENDING = "pending"
    DELIVERED = "delivered"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"


@logistics.aggregate
class Order:
    external_order_id = String(required=True, max_length=100, unique=True)
    customer_id = String(max_length=100)
    customer_name = String(required=True, max_length=200)
    customer_email = String(required=True, max_length=254)
    customer_phone = String(max_length=30)
    shipping_address = String(required=True, max_length=300)
    shipping_city = String(required=True, max_length=100)
    shipping_state = String(required=True, max_length=100)
    subtotal = Float(default=0.0)
    total = Float(default=0.0)
    shipping_fee_paid = Float(default=0.0)
    currency = String(max_length=10)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    commerce_status = String(max_length=50)
    overall_status = String(choices=OverallStatus, default=OverallStatus.PENDING.value)
    sub_order_count = Integer(default=0)
    notes = Text()
    ordered_at = DateTime()
    delivered_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, **fields):
        """Create a freshly ingested order and record the ingestion event."""
        now = datetime.now(UTC)
        ordered_at = fields.pop("ordered_at", None) or now
        order = cls(
            **fields,
            overall_status=OverallStatus.PENDING.value,
            ordered_at=ordered_at,
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderIngested(
                order_id=str(order.id),
                external_order_id=order.external_order_id,
                customer_email=order.customer_email,
                total=order.total,
                shipping_fee_paid=order.shipping_fee_paid,
                payment_status=order.payment_status,
                ingested_at=now,
            )
        )
        return order

    def belongs_to(self, customer_id: str | None = None, email: str | None = None) -> bool:
        if customer_id and self.customer_id and str(customer_id) == str(self.customer_id):
            return True
        if email and self.customer_email:
            return email.strip().lower() == self.customer_email.strip().lower()
        return False

    def age_in_days(self, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        placed = self.ordered_at or self.created_at
        if placed.tzinfo is None:
            placed = placed.replace(tzinfo=UTC)
        return (now - placed).days

    def mark_delivered(self) -> bool:
        """Set the order delivered. Returns False when it already was."""
        if self.overall_status == OverallStatus.DELIVERED.value:
            return False
        now = datetime.now(UTC)
        self.overall_status = OverallStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now
        self.raise_(
            OrderDelivered(
                order_id=str(self.id),
                external_order_id=self.external_order_id,
                delivered_at=now,
            )
        )
        return True
