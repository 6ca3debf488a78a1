"""Return progress reported by customers and hub staff.

Customers submit the courier tracking number for a drop-off. Staff move a
return from in-transit to delivered at the hub and into inspection.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from logistics.domain import logistics
from logistics.returns.return_request import (
    STAFF_PROGRESS_STATUSES,
    ReturnMethod,
    ReturnRequest,
    ReturnShipment,
    ReturnStatus,
    StatusSource,
)
from logistics.returns.shipments import find_shipment_by_tracking, save_return, shipments_for

logger = structlog.get_logger(__name__)


@logistics.command(part_of="ReturnRequest")
class SubmitReturnTracking:
    return_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=100)


@logistics.command(part_of="ReturnRequest")
class AdvanceReturnStatus:
    return_id = Identifier(required=True)
    status = String(required=True, max_length=50)


@logistics.command_handler(part_of=ReturnRequest)
class ReturnProgressHandler:
    @handle(SubmitReturnTracking)
    def submit_tracking(self, command: SubmitReturnTracking) -> str:
        tracking_number = (command.tracking_number or "").strip()
        if not tracking_number:
            raise ValidationError({"tracking_number": ["is required"]})

        request = current_domain.repository_for(ReturnRequest).get(command.return_id)
        if request.method != ReturnMethod.DROPOFF.value:
            raise ValidationError({"method": ["Tracking numbers are only submitted for drop-off returns"]})

        other = find_shipment_by_tracking(tracking_number)
        if other is not None and str(other.return_request_id) != str(request.id):
            raise ValidationError({"tracking_number": ["Tracking number is already used by another return"]})

        existing = shipments_for(str(request.id))
        shipment = existing[0] if existing else ReturnShipment.create(request)
        shipment.attach_tracking(tracking_number, submitted_by_customer=True)
        request.advance(ReturnStatus.IN_TRANSIT, StatusSource.CUSTOMER)
        save_return(request, [shipment])

        logger.info("Customer submitted return tracking", return_id=str(request.id), tracking_number=tracking_number)
        return request.status

    @handle(AdvanceReturnStatus)
    def advance_status(self, command: AdvanceReturnStatus) -> str:
        try:
            target = ReturnStatus(command.status)
        except ValueError:
            target = None
        if target not in STAFF_PROGRESS_STATUSES:
            allowed = ", ".join(sorted(s.value for s in STAFF_PROGRESS_STATUSES))
            raise ValidationError({"status": [f"Staff can only move a return to: {allowed}"]})

        request = current_domain.repository_for(ReturnRequest).get(command.return_id)
        if request.advance(target, StatusSource.STAFF):
            save_return(request)
            logger.info("Return status advanced by staff", return_id=str(request.id), status=target.value)
        return request.status
