"""Courier booking and tracking pulls for sub-orders."""

import json

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from logistics.catalog import ReferenceCatalog
from logistics.courier.port import Address, CourierPort, ShipmentRequest
from logistics.order.order import Order
from logistics.order.sub_order import SubOrder
from logistics.order.tracking import apply_status_to_sub_order

logger = structlog.get_logger(__name__)


def hub_address(hub) -> Address:
    return Address(
        name=hub.name,
        phone=hub.phone or "",
        address=hub.address or "",
        city=hub.city or "",
        state=hub.state or "",
    )


class ShipmentBooking:
    def __init__(self, courier: CourierPort, catalog: ReferenceCatalog):
        self.courier = courier
        self.catalog = catalog

    def _shipment_request(self, sub_order: SubOrder, order: Order) -> ShipmentRequest:
        hub = self.catalog.hub(sub_order.hub_id)
        if hub is None:
            raise ValidationError({"hub_id": [f"Hub {sub_order.hub_id} is not active"]})
        items = sub_order.items or []
        return ShipmentRequest(
            reference=str(sub_order.id),
            sender=hub_address(hub),
            recipient=Address(
                name=order.customer_name,
                phone=order.customer_phone or "",
                address=order.shipping_address,
                city=order.shipping_city,
                state=order.shipping_state,
            ),
            weight=sub_order.total_weight or 0.0,
            declared_value=sub_order.items_total or 0.0,
            description=", ".join(f"{i.name} x{i.quantity}" for i in items) or f"Order {order.external_order_id}",
        )

    def create_shipment(self, sub_order_id: str) -> SubOrder:
        """Book the courier for a sub-order; a no-op when it already has a tracking number."""
        repo = current_domain.repository_for(SubOrder)
        sub_order = repo.get(sub_order_id)
        if sub_order.has_shipment:
            logger.info(
                "Shipment already exists",
                sub_order_id=sub_order_id,
                tracking_number=sub_order.tracking_number,
            )
            return sub_order

        order = current_domain.repository_for(Order).get(sub_order.order_id)
        created = self.courier.create_shipment(self._shipment_request(sub_order, order))
        sub_order.assign_shipment(created.tracking_id, created.external_order_id)
        repo.add(sub_order)
        logger.info("Shipment created", sub_order_id=sub_order_id, tracking_number=created.tracking_id)
        return sub_order

    def refresh_tracking(self, sub_order_id: str) -> str:
        """Pull the courier's current status for a sub-order and apply it."""
        sub_order = current_domain.repository_for(SubOrder).get(sub_order_id)
        if not sub_order.has_shipment:
            raise ValidationError({"tracking_number": ["Sub-order has no courier shipment yet"]})

        snapshot = self.courier.fetch_tracking(sub_order.tracking_number)
        latest = snapshot.events[-1] if snapshot.events else None
        return apply_status_to_sub_order(
            sub_order,
            snapshot.status,
            description=latest.description if latest else None,
            occurred_at=latest.occurred_at if latest else None,
            raw_data=json.dumps(snapshot.raw, default=str) if snapshot.raw else None,
            status=self.courier.map_status(snapshot.status),
        )
