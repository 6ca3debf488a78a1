"""Opening returns and booking return pickups.

Eligibility (ownership and the return window) is checked before anything is
written. A pickup that the courier cannot book leaves the request in
REQUESTED with the error recorded; ``book_pickup`` can be called again.
"""

from datetime import datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from logistics.catalog import ReferenceCatalog
from logistics.config import Settings
from logistics.courier.port import Address, CourierPort, ShipmentRequest
from logistics.errors import CourierUnavailable, ReturnForbidden, ReturnWindowExceeded
from logistics.order.order import Order
from logistics.order.shipping import hub_address
from logistics.order.sub_order import SubOrder
from logistics.returns.return_request import (
    ReturnMethod,
    ReturnRequest,
    ReturnResolution,
    ReturnShipment,
    ReturnStatus,
)
from logistics.returns.shipments import save_return, shipments_for

logger = structlog.get_logger(__name__)


def _parse_choice(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError({field_name: [f"Must be one of: {allowed}"]}) from None


class ReturnDesk:
    def __init__(self, courier: CourierPort, catalog: ReferenceCatalog, settings: Settings):
        self.courier = courier
        self.catalog = catalog
        self.settings = settings

    def _return_hub(self, order: Order, sub_order_id: str | None):
        repo = current_domain.repository_for(SubOrder)
        if sub_order_id:
            sub_order = repo.get(sub_order_id)
            if str(sub_order.order_id) != str(order.id):
                raise ValidationError({"sub_order_id": ["Sub-order does not belong to this order"]})
        else:
            sub_order = repo._dao.query.filter(order_id=str(order.id)).all().first
        return self.catalog.hub(sub_order.hub_id) if sub_order else None

    def _check_eligibility(self, order: Order, customer_id: str | None, customer_email: str | None, now) -> None:
        if not order.belongs_to(customer_id=customer_id, email=customer_email):
            raise ReturnForbidden("Order does not belong to this customer", order_id=str(order.id))
        age = order.age_in_days(now)
        if age > self.settings.return_window_days:
            raise ReturnWindowExceeded(
                f"Returns are accepted within {self.settings.return_window_days} days of purchase",
                order_id=str(order.id),
                age_days=age,
            )

    def open_return(
        self,
        order_id: str,
        method: str,
        preferred_resolution: str,
        reason: str,
        customer_id: str | None = None,
        customer_email: str | None = None,
        evidence: list[str] | None = None,
        items: list[dict] | None = None,
        sub_order_id: str | None = None,
        now: datetime | None = None,
    ) -> ReturnRequest:
        """Create a return request and start its courier leg."""
        order = current_domain.repository_for(Order).get(order_id)
        self._check_eligibility(order, customer_id, customer_email, now)

        return_method = _parse_choice(ReturnMethod, method, "method")
        resolution = _parse_choice(ReturnResolution, preferred_resolution, "preferred_resolution")
        if not (reason or "").strip():
            raise ValidationError({"reason": ["is required"]})

        hub = self._return_hub(order, sub_order_id)
        if return_method == ReturnMethod.PICKUP:
            missing = []
            if not order.shipping_address or not order.shipping_state:
                missing.append("customer address")
            if hub is None or not hub.address or not hub.state:
                missing.append("hub address")
            if missing:
                raise ValidationError({"method": [f"Pickup needs {' and '.join(missing)}"]})

        request = ReturnRequest.create(
            order,
            method=return_method,
            preferred_resolution=resolution,
            reason=reason.strip(),
            evidence=evidence,
            items=items,
            sub_order_id=sub_order_id,
        )
        if return_method == ReturnMethod.DROPOFF:
            request.await_dropoff()
        shipment = ReturnShipment.create(request)
        save_return(request, [shipment])
        logger.info(
            "Return requested",
            return_id=str(request.id),
            return_code=request.return_code,
            order_id=order_id,
            method=return_method.value,
        )

        if return_method == ReturnMethod.PICKUP:
            return self._book(request, order, hub, shipment)
        return request

    def _book(self, request: ReturnRequest, order: Order, hub, shipment: ReturnShipment) -> ReturnRequest:
        pickup = ShipmentRequest(
            reference=request.return_code,
            sender=Address(
                name=order.customer_name,
                phone=order.customer_phone or "",
                address=order.shipping_address,
                city=order.shipping_city,
                state=order.shipping_state,
            ),
            recipient=hub_address(hub),
            weight=1.0,
            declared_value=order.subtotal or 0.0,
            description=f"Return {request.return_code} for order {order.external_order_id}",
            is_return=True,
        )
        try:
            created = self.courier.create_shipment(pickup)
        except CourierUnavailable as exc:
            logger.warning("Return pickup booking deferred", return_id=str(request.id), reason=exc.message)
            request.record_pickup_failure(exc.message)
            save_return(request, [shipment])
            return request

        shipment.attach_tracking(created.tracking_id, created.external_order_id)
        request.schedule_pickup(created.tracking_id)
        save_return(request, [shipment])
        logger.info("Return pickup scheduled", return_id=str(request.id), tracking_number=created.tracking_id)
        return request

    def book_pickup(self, return_id: str) -> ReturnRequest:
        """Retry the courier booking for a pickup return still in REQUESTED."""
        request = current_domain.repository_for(ReturnRequest).get(return_id)
        if request.method != ReturnMethod.PICKUP.value:
            raise ValidationError({"method": ["Only pickup returns are booked with the courier"]})
        if ReturnStatus(request.status) != ReturnStatus.REQUESTED:
            raise ValidationError({"status": [f"Pickup already handled (status {request.status})"]})

        order = current_domain.repository_for(Order).get(request.order_id)
        hub = self._return_hub(order, request.sub_order_id)
        if hub is None:
            raise ValidationError({"method": ["Pickup needs hub address"]})
        existing = shipments_for(return_id)
        shipment = existing[0] if existing else ReturnShipment.create(request)
        return self._book(request, order, hub, shipment)
