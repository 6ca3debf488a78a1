"""Courier status updates: command, handler and the order roll-up.

Updates are keyed by tracking number, so redelivered webhooks resolve to the
same sub-order and re-applying a status changes nothing.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import DateTime, String, Text
from protean.utils.globals import current_domain

from logistics.courier.status import map_courier_status
from logistics.domain import logistics
from logistics.order.order import Order
from logistics.order.sub_order import SubOrder, SubOrderStatus
from logistics.returns import shipments as return_shipments

logger = structlog.get_logger(__name__)


class UpdateOutcome:
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    IGNORED = "ignored"
    RETURN_UPDATED = "return_updated"
    NOT_FOUND = "not_found"


def find_sub_order_by_tracking(tracking_number: str) -> SubOrder | None:
    repo = current_domain.repository_for(SubOrder)
    results = repo._dao.query.filter(tracking_number=tracking_number).all()
    return results.first if results.items else None


def refresh_order_status(order_id: str, updated: SubOrder | None = None) -> bool:
    """Mark the order delivered once every sub-order is delivered or cancelled.

    ``updated`` is the sub-order just changed in this unit of work; it takes
    precedence over the stored copy. Returns True when the order changed.
    """
    sub_orders = {
        str(s.id): s for s in current_domain.repository_for(SubOrder)._dao.query.filter(order_id=str(order_id)).all().items
    }
    if updated is not None:
        sub_orders[str(updated.id)] = updated
    if not sub_orders or not all(s.is_settled for s in sub_orders.values()):
        return False

    repo = current_domain.repository_for(Order)
    order = repo.get(order_id)
    if not order.mark_delivered():
        return False
    repo.add(order)
    logger.info("Order delivered", order_id=str(order_id), sub_order_count=len(sub_orders))
    return True


def apply_status_to_sub_order(
    sub_order: SubOrder,
    courier_status: str | None,
    description: str | None = None,
    occurred_at=None,
    raw_data: str | None = None,
    status: SubOrderStatus | None = None,
) -> str:
    """Apply a courier update. ``status`` overrides the mapping of ``courier_status``."""
    status = status or map_courier_status(courier_status)
    try:
        changed = sub_order.apply_courier_status(
            status,
            courier_status=courier_status,
            description=description,
            occurred_at=occurred_at,
            raw_data=raw_data,
        )
    except ValidationError as exc:
        logger.warning(
            "Ignoring courier status that does not fit the sub-order's lifecycle",
            sub_order_id=str(sub_order.id),
            status=sub_order.status,
            courier_status=courier_status,
            error=str(exc.messages),
        )
        return UpdateOutcome.IGNORED

    if not changed:
        return UpdateOutcome.UNCHANGED
    current_domain.repository_for(SubOrder).add(sub_order)
    refresh_order_status(str(sub_order.order_id), updated=sub_order)
    return UpdateOutcome.UPDATED


@logistics.command(part_of="SubOrder")
class ApplyCourierStatus:
    """A courier reported a new status for a tracking number."""

    tracking_number = String(required=True, max_length=100)
    courier_status = String(max_length=100)
    description = String(max_length=500)
    occurred_at = DateTime()
    raw_data = Text()


@logistics.command_handler(part_of=SubOrder)
class CourierStatusHandler:
    @handle(ApplyCourierStatus)
    def apply_courier_status(self, command: ApplyCourierStatus) -> str:
        sub_order = find_sub_order_by_tracking(command.tracking_number)
        if sub_order is not None:
            return apply_status_to_sub_order(
                sub_order,
                command.courier_status,
                description=command.description,
                occurred_at=command.occurred_at,
                raw_data=command.raw_data,
            )

        shipment = return_shipments.find_shipment_by_tracking(command.tracking_number)
        if shipment is not None:
            return_shipments.apply_courier_status(shipment, command.courier_status)
            return UpdateOutcome.RETURN_UPDATED

        logger.info("Courier update for unknown tracking number", tracking_number=command.tracking_number)
        return UpdateOutcome.NOT_FOUND
