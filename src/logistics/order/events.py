"""Order and sub-order domain events.

Past tense, versioned, and self-contained so settlement reporting and
notifications can consume them without reading the aggregates.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String

from logistics.domain import logistics


@logistics.event(part_of="Order")
class OrderIngested:
    """A commerce order was accepted and split into hub sub-orders."""

    __version__ = 1

    order_id = Identifier(required=True)
    external_order_id = String(required=True)
    customer_email = String()
    total = Float(required=True)
    shipping_fee_paid = Float(required=True)
    payment_status = String(required=True)
    ingested_at = DateTime(required=True)


@logistics.event(part_of="Order")
class OrderDelivered:
    """Every sub-order of the order is delivered or cancelled."""

    __version__ = 1

    order_id = Identifier(required=True)
    external_order_id = String(required=True)
    delivered_at = DateTime(required=True)


@logistics.event(part_of="SubOrder")
class SubOrderCreated:
    __version__ = 1

    sub_order_id = Identifier(required=True)
    order_id = Identifier(required=True)
    hub_id = Identifier(required=True)
    courier_id = Identifier()
    item_count = Integer(required=True)
    total_weight = Float(required=True)
    real_shipping_cost = Float(required=True)
    allocated_shipping_fee = Float(required=True)
    shipping_profit_loss = Float(required=True)
    created_at = DateTime(required=True)


@logistics.event(part_of="SubOrder")
class ShipmentAssigned:
    """The courier accepted the shipment and issued a tracking number."""

    __version__ = 1

    sub_order_id = Identifier(required=True)
    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    courier_shipment_id = String()
    assigned_at = DateTime(required=True)


@logistics.event(part_of="SubOrder")
class SubOrderStatusChanged:
    __version__ = 1

    sub_order_id = Identifier(required=True)
    order_id = Identifier(required=True)
    tracking_number = String()
    previous_status = String(required=True)
    new_status = String(required=True)
    courier_status = String()
    changed_at = DateTime(required=True)
