"""Persistence helpers that keep return shipments in step with their request.

Every change to a ReturnRequest's status is saved through ``save_return`` so
its shipments always carry the same status. The shipment write is secondary:
if it fails the request change stands and the failure is logged.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from logistics.courier.status import map_return_status, return_status_for
from logistics.order.sub_order import SubOrderStatus
from logistics.returns.return_request import ReturnRequest, ReturnShipment, ReturnStatus, StatusSource

logger = structlog.get_logger(__name__)


def shipments_for(return_id: str) -> list[ReturnShipment]:
    repo = current_domain.repository_for(ReturnShipment)
    return repo._dao.query.filter(return_request_id=str(return_id)).all().items


def find_shipment_by_tracking(tracking_number: str) -> ReturnShipment | None:
    repo = current_domain.repository_for(ReturnShipment)
    results = repo._dao.query.filter(tracking_number=tracking_number).all()
    return results.first if results.items else None


def save_return(request: ReturnRequest, shipments: list[ReturnShipment] | None = None) -> None:
    """Persist the request, then mirror its status onto each shipment."""
    current_domain.repository_for(ReturnRequest).add(request)

    known = {str(s.id): s for s in shipments or []}
    for stored in shipments_for(str(request.id)):
        known.setdefault(str(stored.id), stored)

    ship_repo = current_domain.repository_for(ReturnShipment)
    for shipment in known.values():
        try:
            shipment.mirror(request)
            ship_repo.add(shipment)
        except Exception:
            logger.exception(
                "Return shipment status sync failed",
                return_id=str(request.id),
                return_shipment_id=str(shipment.id),
                status=request.status,
            )


def apply_courier_status(
    shipment: ReturnShipment,
    courier_status: str,
    expected_status: ReturnStatus | None = None,
    mapped_status: SubOrderStatus | None = None,
) -> bool:
    """Apply a courier status to the shipment's return request.

    With ``expected_status`` the update only goes through if the request is
    still in that status, so a concurrent webhook and sync pass cannot
    overwrite each other. ``mapped_status`` is the courier's own mapping of
    ``courier_status`` when it has one. Returns True when the request status changed.
    """
    request = current_domain.repository_for(ReturnRequest).get(shipment.return_request_id)
    if expected_status is not None and request.status != expected_status.value:
        logger.info(
            "Return changed since it was read, skipping courier update",
            return_id=str(request.id),
            expected=expected_status.value,
            actual=request.status,
        )
        return False

    shipment.note_courier_status(courier_status)
    target = return_status_for(mapped_status) if mapped_status else map_return_status(courier_status)
    changed = False
    if target is not None:
        try:
            changed = request.advance(target, StatusSource.COURIER)
        except ValidationError:
            logger.warning(
                "Ignoring courier status that does not fit the return's lifecycle",
                return_id=str(request.id),
                status=request.status,
                courier_status=courier_status,
            )

    if changed:
        save_return(request, [shipment])
    else:
        current_domain.repository_for(ReturnShipment).add(shipment)
    return changed
